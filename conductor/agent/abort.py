"""
Cancellation signals for one agent turn.

Each turn owns two independent signals: one covering model backend calls
(including compression) and one covering tool execution and the hook
processes it triggers. Both are passed explicitly down the call chain and
reused by every recursion of the turn. Aborting fires both, idempotently.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from conductor.exceptions import AbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AbortSignal:
    """
    A one-shot cancellation token.

    Parameters
    ----------
    name : str
        Label used in logs and in ``AbortedError`` messages.

    Examples
    --------
    >>> signal = AbortSignal("model")
    >>> result = await signal.race(backend.send(messages))
    >>> signal.abort()
    >>> signal.aborted
    True
    """

    def __init__(self, name: str) -> None:
        self.name: str = name
        self._event: asyncio.Event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self) -> None:
        """Fire the signal. Later calls do nothing."""
        if self._event.is_set():
            return
        logger.debug(f"Abort signal '{self.name}' fired")
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception(f"Abort callback for '{self.name}' failed")

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` when the signal fires, immediately if it already has."""
        if self.aborted:
            callback()
        else:
            self._callbacks.append(callback)

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise AbortedError(f"{self.name} aborted")

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Await ``awaitable`` unless the signal fires first.

        Parameters
        ----------
        awaitable : Awaitable[T]
            Work to run.

        Returns
        -------
        T
            The awaitable's result.

        Raises
        ------
        AbortedError
            If the signal fired before the work finished. The work is
            cancelled and its result discarded.
        """
        task: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        if self.aborted:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise AbortedError(f"{self.name} aborted")

        waiter: asyncio.Future[None] = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if self.aborted:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
            raise AbortedError(f"{self.name} aborted")

        return task.result()


@dataclass(frozen=True)
class TurnSignals:
    """The pair of signals shared by one turn and all of its recursions."""

    model: AbortSignal
    tools: AbortSignal

    @property
    def aborted(self) -> bool:
        return self.model.aborted or self.tools.aborted

    def raise_if_aborted(self) -> None:
        self.model.raise_if_aborted()
        self.tools.raise_if_aborted()


class AbortCoordinator:
    """
    Owns the signals of the current turn.

    ``begin_turn`` creates a fresh pair; ``abort`` fires both of the current
    pair. Aborting with no turn in progress is a no-op.

    Examples
    --------
    >>> coordinator = AbortCoordinator()
    >>> signals = coordinator.begin_turn()
    >>> coordinator.abort()
    >>> signals.model.aborted and signals.tools.aborted
    True
    """

    def __init__(self) -> None:
        self._current: TurnSignals | None = None

    @property
    def current(self) -> TurnSignals | None:
        return self._current

    def begin_turn(self) -> TurnSignals:
        self._current = TurnSignals(
            model=AbortSignal("model"),
            tools=AbortSignal("tools"),
        )
        return self._current

    def abort(self) -> None:
        if self._current is None:
            return
        self._current.model.abort()
        self._current.tools.abort()

    def abort_model(self) -> None:
        if self._current is not None:
            self._current.model.abort()

    def abort_tools(self) -> None:
        if self._current is not None:
            self._current.tools.abort()
