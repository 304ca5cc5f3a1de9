"""
Hook dispatch and exit-code semantics.

For one lifecycle event the dispatcher selects the configured hook groups
(user-level first, then project-level) whose matcher accepts the tool name,
runs every command concurrently, and applies the results in configuration
order:

=========  =============  ==================  ==================  ==================
exit code  PreToolUse     PostToolUse         UserPromptSubmit    Stop
=========  =============  ==================  ==================  ==================
0          proceed        proceed             stdout becomes a    proceed
                                              user turn
2          block the      stderr becomes a    error block,        stderr becomes a
           tool           user turn           prompt retracted    user turn, recurse
other      error block    error block         error block         error block
=========  =============  ==================  ==================  ==================

The first blocking result in declared order is authoritative. Later
blocking results are logged but not applied. When any UserPromptSubmit hook
blocks, no hook's stdout is injected.
"""

import asyncio
import logging

from conductor.agent.abort import AbortSignal
from conductor.config.schema import Configuration, HookEvent
from conductor.constants import HOOK_BLOCKING_EXIT_CODE, HOOK_FAILURE_FALLBACK_MESSAGE
from conductor.exceptions import AbortedError
from conductor.hooks.matcher import matches
from conductor.hooks.models import HookContext, HookExecutionResult, HookOutcome
from conductor.hooks.runner import HookRunner
from conductor.messages.store import BlockStore

logger = logging.getLogger(__name__)


def _failure_message(result: HookExecutionResult) -> str:
    return result.stderr.strip() or HOOK_FAILURE_FALLBACK_MESSAGE


def _is_blocking(result: HookExecutionResult) -> bool:
    return result.exit_code == HOOK_BLOCKING_EXIT_CODE and not result.timed_out


class HookDispatcher:
    """
    Applies hook results for lifecycle events to a ``BlockStore``.

    Parameters
    ----------
    config : Configuration
        Source of hook groups and hook environment variables.
    store : BlockStore
        Conversation the results are applied to.
    runner : HookRunner | None, optional
        Process runner. A default one is created if omitted.

    Examples
    --------
    >>> dispatcher = HookDispatcher(config, store)
    >>> outcome = await dispatcher.dispatch(
    ...     HookEvent.PRE_TOOL_USE,
    ...     context,
    ...     abort_signal=signals.tools,
    ... )
    >>> if outcome.blocked:
    ...     ...  # skip the tool
    """

    def __init__(
        self,
        config: Configuration,
        store: BlockStore,
        runner: HookRunner | None = None,
    ) -> None:
        self.config: Configuration = config
        self.store: BlockStore = store
        self.runner: HookRunner = runner if runner is not None else HookRunner()

    def resolve_commands(self, event: HookEvent, tool_name: str | None = None) -> list[tuple[str, int]]:
        """
        Commands that apply to an event, in configuration order.

        Returns
        -------
        list[tuple[str, int]]
            ``(command, timeout_ms)`` pairs.
        """
        commands: list[tuple[str, int]] = []
        for group in self.config.hook_groups(event):
            if event.requires_matcher:
                if not matches(group.matcher, tool_name):
                    logger.debug(
                        f"Skipping {event.value} group: matcher '{group.matcher}' "
                        f"does not match '{tool_name}'",
                    )
                    continue
            elif group.matcher:
                logger.warning(f"Ignoring matcher '{group.matcher}' on {event.value} hooks")
            commands.extend((hook.command, hook.timeout_ms) for hook in group.hooks)
        return commands

    async def dispatch(
        self,
        event: HookEvent,
        context: HookContext,
        abort_signal: AbortSignal | None = None,
    ) -> HookOutcome:
        """
        Run the hooks for an event and apply their results.

        Parameters
        ----------
        event : HookEvent
            Lifecycle event.
        context : HookContext
            Payload fields plus the tool id or prompt message to act on.
        abort_signal : AbortSignal | None, optional
            Tool-execution signal shared with the running turn.

        Returns
        -------
        HookOutcome
            Results in configuration order and whether the event was blocked.

        Raises
        ------
        AbortedError
            If the signal fired while hooks were running. Nothing is applied.
        """
        commands = self.resolve_commands(event, context.tool_name)
        if not commands:
            return HookOutcome()

        json_input = context.to_json_input(event)
        env_overrides: dict[str, str] = self.config.merged_env()

        logger.debug(f"Dispatching {len(commands)} {event.value} hook(s)")
        results: list[HookExecutionResult] = list(
            await asyncio.gather(
                *(
                    self.runner.run(
                        command,
                        json_input,
                        cwd=context.cwd,
                        env_overrides=env_overrides,
                        timeout_ms=timeout_ms,
                        abort_signal=abort_signal,
                    )
                    for command, timeout_ms in commands
                ),
            ),
        )

        if (abort_signal is not None and abort_signal.aborted) or any(
            r.aborted for r in results
        ):
            raise AbortedError(f"{event.value} hooks aborted")

        return self._apply(event, context, results)

    def _apply(
        self,
        event: HookEvent,
        context: HookContext,
        results: list[HookExecutionResult],
    ) -> HookOutcome:
        blocked: bool = False
        reason: str | None = None
        # a blocked prompt takes no context from any hook in the same dispatch
        inject_context: bool = event == HookEvent.USER_PROMPT_SUBMIT and not any(
            _is_blocking(r) for r in results
        )

        for result in results:
            if result.exit_code == 0 and not result.timed_out:
                if inject_context:
                    context_text: str = result.stdout.strip()
                    if context_text:
                        self.store.add_user_message(context_text)
                continue

            if _is_blocking(result):
                message: str = _failure_message(result)
                if blocked:
                    logger.info(
                        f"Discarding later blocking {event.value} result from "
                        f"'{result.command}': {message}",
                    )
                    continue
                self._apply_blocking(event, context, message)
                if event != HookEvent.POST_TOOL_USE:
                    blocked = True
                    reason = message
                continue

            logger.warning(
                f"{event.value} hook '{result.command}' failed "
                f"(exit {result.exit_code}, timed out: {result.timed_out})",
            )
            self.store.add_error_block(_failure_message(result))

        return HookOutcome(results=results, blocked=blocked, reason=reason)

    def _apply_blocking(self, event: HookEvent, context: HookContext, message: str) -> None:
        if event == HookEvent.PRE_TOOL_USE:
            if context.tool_id is None:
                logger.warning("PreToolUse block without a tool id")
                return
            self.store.update_tool_block(
                context.tool_id,
                result=message,
                success=False,
                error=message,
            )
        elif event == HookEvent.POST_TOOL_USE:
            self.store.add_user_message(message)
        elif event == HookEvent.USER_PROMPT_SUBMIT:
            self.store.add_error_block(message)
            if context.user_message is not None:
                self.store.remove_message(context.user_message)
        elif event == HookEvent.STOP:
            self.store.add_user_message(message)
