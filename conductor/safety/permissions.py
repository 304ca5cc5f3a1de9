"""
Permission gate for restricted tools.

Every restricted tool call passes through ``PermissionGate.check_permission``
after its arguments are validated and its preview is computed, and before
its effect runs. The gate is fail-closed: anything other than an explicit
allow is a denial.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable

from conductor.agent.abort import AbortSignal
from conductor.config.schema import PermissionMode
from conductor.constants import PERMISSION_CALLBACK_TIMEOUT_S, RESTRICTED_TOOLS
from conductor.exceptions import AbortedError
from conductor.safety.confirmation import ConfirmationQueue
from conductor.safety.models import PermissionDecision, PermissionRequest
from conductor.safety.rules import rule_for, rule_matches

logger = logging.getLogger(__name__)

# Host-supplied callback: receives the tool name, returns a decision or a
# {"behavior": "allow" | "deny", "message": ...} mapping, sync or async.
CanUseTool = Callable[[str], Any]


class PermissionGate:
    """
    Decides whether a restricted tool call may run.

    Procedure, in order:

    1. ``bypass`` mode allows immediately.
    2. A configured or session allow rule allows.
    3. A host callback, if supplied, decides. Exceptions, invalid answers,
       timeouts and aborts all deny.
    4. Otherwise the request joins the confirmation queue and waits.

    Parameters
    ----------
    mode : PermissionMode, default=PermissionMode.DEFAULT
        Session permission mode.
    queue : ConfirmationQueue | None, optional
        Shared confirmation queue. One is created if omitted.
    can_use_tool : CanUseTool | None, optional
        Host callback replacing human confirmation.
    allow_rules : Iterable[str], optional
        Allow rules from settings.
    callback_timeout : float | None, default=300.0
        Seconds to wait for the host callback before denying. ``None`` waits
        until the tool-execution signal fires.

    Examples
    --------
    >>> gate = PermissionGate(PermissionMode.BYPASS)
    >>> (await gate.check_permission("Write")).allowed
    True
    """

    restricted_tools: frozenset[str] = RESTRICTED_TOOLS

    def __init__(
        self,
        mode: PermissionMode = PermissionMode.DEFAULT,
        queue: ConfirmationQueue | None = None,
        can_use_tool: CanUseTool | None = None,
        allow_rules: Iterable[str] = (),
        callback_timeout: float | None = PERMISSION_CALLBACK_TIMEOUT_S,
    ) -> None:
        self.mode: PermissionMode = mode
        self.queue: ConfirmationQueue = queue if queue is not None else ConfirmationQueue()
        self.can_use_tool: CanUseTool | None = can_use_tool
        self.allow_rules: list[str] = list(allow_rules)
        self.session_rules: list[str] = []
        self.callback_timeout: float | None = callback_timeout

    def is_restricted(self, tool_name: str) -> bool:
        return tool_name in self.restricted_tools

    def _matches_allow_rule(self, request: PermissionRequest) -> bool:
        return any(
            rule_matches(rule, request)
            for rule in (*self.allow_rules, *self.session_rules)
        )

    async def check_permission(
        self,
        tool_name: str,
        mode: PermissionMode | None = None,
        host_callback: CanUseTool | None = None,
        request: PermissionRequest | None = None,
        abort_signal: AbortSignal | None = None,
    ) -> PermissionDecision:
        """
        Decide a restricted tool call.

        Parameters
        ----------
        tool_name : str
            Restricted tool name.
        mode : PermissionMode | None, optional
            Overrides the gate's mode for this call.
        host_callback : CanUseTool | None, optional
            Overrides the gate's callback for this call.
        request : PermissionRequest | None, optional
            Preview shown to the user and matched against allow rules.
        abort_signal : AbortSignal | None, optional
            Tool-execution signal; firing it denies a pending decision.

        Returns
        -------
        PermissionDecision
            Never raises; failures are denials.
        """
        effective_mode: PermissionMode = mode or self.mode
        if effective_mode == PermissionMode.BYPASS:
            logger.debug(f"Bypass mode: allowing {tool_name}")
            return PermissionDecision.allow()

        request = request or PermissionRequest(tool_name=tool_name)

        if self._matches_allow_rule(request):
            logger.debug(f"Allow rule matched for {tool_name}")
            return PermissionDecision.allow()

        callback: CanUseTool | None = host_callback or self.can_use_tool
        if callback is not None:
            return await self._ask_callback(callback, tool_name, abort_signal)

        return await self._ask_queue(request, abort_signal)

    async def _ask_callback(
        self,
        callback: CanUseTool,
        tool_name: str,
        abort_signal: AbortSignal | None,
    ) -> PermissionDecision:
        async def invoke() -> Any:
            result = callback(tool_name)
            if isinstance(result, Awaitable):
                return await result
            return result

        try:
            work: Awaitable[Any] = asyncio.wait_for(invoke(), timeout=self.callback_timeout)
            if abort_signal is not None:
                answer: Any = await abort_signal.race(work)
            else:
                answer = await work
        except AbortedError:
            logger.info(f"Permission callback for {tool_name} aborted")
            return PermissionDecision.aborted()
        except asyncio.TimeoutError:
            logger.warning(f"Permission callback for {tool_name} timed out")
            return PermissionDecision.deny(f"Permission check for {tool_name} timed out")
        except Exception as e:
            logger.error(f"Permission callback for {tool_name} failed: {e}", exc_info=True)
            return PermissionDecision.deny(f"Permission check failed: {e}")

        try:
            decision: PermissionDecision = (
                answer
                if isinstance(answer, PermissionDecision)
                else PermissionDecision.model_validate(answer)
            )
        except Exception as e:
            logger.error(f"Invalid permission callback answer for {tool_name}: {answer!r}")
            return PermissionDecision.deny(f"Invalid permission decision: {e}")

        if not decision.allowed and not decision.message:
            decision = PermissionDecision.deny(f"Permission to use {tool_name} was denied")
        return decision

    async def _ask_queue(
        self,
        request: PermissionRequest,
        abort_signal: AbortSignal | None,
    ) -> PermissionDecision:
        try:
            if abort_signal is not None:
                decision = await abort_signal.race(self.queue.request(request))
            else:
                decision = await self.queue.request(request)
        except AbortedError:
            return PermissionDecision.aborted()

        if decision.allowed and decision.remember:
            rule: str = rule_for(request)
            self.session_rules.append(rule)
            logger.info(f"Added session allow rule: {rule}")
        if not decision.allowed and not decision.message:
            decision = PermissionDecision.deny(
                f"Permission to use {request.tool_name} was denied",
            )
        return decision
