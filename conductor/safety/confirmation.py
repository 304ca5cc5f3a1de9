"""
Serial queue of pending human confirmations.

Requests are presented strictly one at a time, in arrival order. The
active item is the head of the queue; resolving it immediately makes the
next one active. Cancelling an item resolves only that item, as a denial.
"""

import asyncio
import itertools
import logging
from collections import deque

from conductor.safety.models import PermissionDecision, PermissionRequest

logger = logging.getLogger(__name__)


class ConfirmationItem:
    """
    One pending confirmation and the channel its answer is sent on.

    Parameters
    ----------
    item_id : int
        Monotonic sequence number.
    request : PermissionRequest
        What is being confirmed.
    """

    def __init__(self, item_id: int, request: PermissionRequest) -> None:
        self.id: int = item_id
        self.request: PermissionRequest = request
        self.result: asyncio.Future[PermissionDecision] = (
            asyncio.get_running_loop().create_future()
        )
        self.presented: bool = False

    @property
    def tool_name(self) -> str:
        return self.request.tool_name

    @property
    def done(self) -> bool:
        return self.result.done()

    def __repr__(self) -> str:
        return f"ConfirmationItem(id={self.id}, tool_name={self.tool_name!r})"


class ConfirmationQueue:
    """
    FIFO confirmation queue with at most one active item.

    Producers call ``request`` and suspend until a decision arrives.
    A consumer (the terminal UI, or a test) drains the queue with ``next``
    and answers with ``resolve``.

    Examples
    --------
    >>> queue = ConfirmationQueue()
    >>> decision_task = asyncio.create_task(queue.request(request))
    >>> item = await queue.next()
    >>> queue.resolve(item, PermissionDecision.allow())
    >>> (await decision_task).allowed
    True
    """

    def __init__(self) -> None:
        self._pending: deque[ConfirmationItem] = deque()
        self._active: ConfirmationItem | None = None
        self._ids = itertools.count(1)
        self._changed: asyncio.Event = asyncio.Event()

    @property
    def active(self) -> ConfirmationItem | None:
        return self._active

    @property
    def pending(self) -> list[ConfirmationItem]:
        """Items waiting behind the active one, in order."""
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending) + (1 if self._active is not None else 0)

    def enqueue(self, request: PermissionRequest) -> ConfirmationItem:
        """Add a request; it becomes active at once if nothing else is."""
        item = ConfirmationItem(next(self._ids), request)
        if self._active is None:
            self._active = item
        else:
            self._pending.append(item)
        logger.debug(f"Confirmation queued for {item.tool_name} (depth {len(self)})")
        self._changed.set()
        return item

    async def request(self, request: PermissionRequest) -> PermissionDecision:
        """
        Enqueue a request and wait for its decision.

        Cancelling the waiting task cancels only this item.
        """
        item = self.enqueue(request)
        try:
            return await asyncio.shield(item.result)
        except asyncio.CancelledError:
            self.cancel(item)
            raise

    async def next(self) -> ConfirmationItem:
        """
        Wait for the active item that has not been presented yet.

        Each item is returned exactly once.
        """
        while True:
            item = self._active
            if item is not None and not item.presented and not item.done:
                item.presented = True
                return item
            self._changed.clear()
            await self._changed.wait()

    def resolve(self, item: ConfirmationItem, decision: PermissionDecision) -> bool:
        """
        Deliver a decision for an item.

        Returns
        -------
        bool
            ``False`` if the item was already resolved.
        """
        if item.done:
            return False

        item.result.set_result(decision)
        logger.debug(f"Confirmation for {item.tool_name} resolved: {decision.behavior.value}")

        if item is self._active:
            self._active = self._pending.popleft() if self._pending else None
        else:
            try:
                self._pending.remove(item)
            except ValueError:
                pass

        self._changed.set()
        return True

    def cancel(self, item: ConfirmationItem) -> bool:
        """Resolve one item as denied with the fixed abort message."""
        return self.resolve(item, PermissionDecision.aborted())
