"""
Recursive agent loop.

One turn: submit the prompt (UserPromptSubmit hooks), then repeatedly ask the
model backend for a response and run the tool calls it returns, strictly in
order, until a response carries no tool calls. Stop hooks may then push
feedback back into the conversation, which starts another round.

Both abort signals of the turn are shared by every round. When either fires,
the loop unwinds without adding an error block; running tool blocks are
marked as aborted.
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Callable

from conductor.agent.abort import AbortCoordinator, TurnSignals
from conductor.agent.compaction import ChatCompactor
from conductor.config.schema import HookEvent
from conductor.constants import ABORTED_BY_USER_MESSAGE
from conductor.exceptions import AbortedError, ConductorError, ValidationError
from conductor.hooks.dispatcher import HookDispatcher
from conductor.hooks.models import HookContext
from conductor.interfaces import ModelBackend
from conductor.llm.models import ModelResponse, ToolCall
from conductor.messages.blocks import Message
from conductor.messages.store import BlockStore
from conductor.tools.invoker import ToolInvoker
from conductor.tools.models import ToolResult
from conductor.types import MessageDict, ToolDefinitions
from conductor.utils.paths import display_path

logger = logging.getLogger(__name__)


class AgentLoop:
    """
    Coordinates the model backend, hooks, permissions and tools for a turn.

    Parameters
    ----------
    store : BlockStore
        Conversation state.
    backend : ModelBackend
        Model backend.
    dispatcher : HookDispatcher
        Applies hook results at the four lifecycle points.
    invoker : ToolInvoker
        Runs tool calls through validation, permission and execution.
    coordinator : AbortCoordinator
        Owns the abort signals of the current turn.
    compactor : ChatCompactor
        Compresses history when token usage passes the limit.
    session_id : str
        Identifier passed to hooks.
    transcript_path : Path
        Transcript location passed to hooks and written after each turn.
    cwd : Path
        Project root.
    system_prompt : Callable[[], str]
        Builds the system prompt for each backend request.
    tools : ToolDefinitions | None, optional
        Tool schemas offered to the model.

    Examples
    --------
    >>> loop = session.loop
    >>> await loop.run_turn("add a README")
    >>> [m.role for m in store.messages]
    [<Role.USER: 'user'>, <Role.ASSISTANT: 'assistant'>]
    """

    def __init__(
        self,
        store: BlockStore,
        backend: ModelBackend,
        dispatcher: HookDispatcher,
        invoker: ToolInvoker,
        coordinator: AbortCoordinator,
        compactor: ChatCompactor,
        session_id: str,
        transcript_path: Path,
        cwd: Path,
        system_prompt: Callable[[], str],
        tools: ToolDefinitions | None = None,
    ) -> None:
        self.store: BlockStore = store
        self.backend: ModelBackend = backend
        self.dispatcher: HookDispatcher = dispatcher
        self.invoker: ToolInvoker = invoker
        self.coordinator: AbortCoordinator = coordinator
        self.compactor: ChatCompactor = compactor
        self.session_id: str = session_id
        self.transcript_path: Path = transcript_path
        self.cwd: Path = cwd
        self.system_prompt: Callable[[], str] = system_prompt
        self.tools: ToolDefinitions | None = tools
        self._busy: bool = False

    @property
    def busy(self) -> bool:
        return self._busy

    def _context(self, **fields: Any) -> HookContext:
        return HookContext(
            session_id=self.session_id,
            transcript_path=self.transcript_path,
            cwd=self.cwd,
            **fields,
        )

    async def run_turn(self, prompt: str) -> None:
        """
        Run one user turn to completion, abort or failure.

        Never raises for hook, tool, permission or backend failures; those end
        up in the store. Aborts return silently.

        Parameters
        ----------
        prompt : str
            User prompt.
        """
        if self._busy:
            logger.warning("A turn is already running; ignoring new prompt")
            return

        self._busy = True
        signals: TurnSignals = self.coordinator.begin_turn()
        try:
            user_message: Message = self.store.add_user_message(prompt)
            outcome = await self.dispatcher.dispatch(
                HookEvent.USER_PROMPT_SUBMIT,
                self._context(prompt=prompt, user_message=user_message),
                abort_signal=signals.tools,
            )
            if outcome.blocked:
                logger.info(f"Prompt blocked by UserPromptSubmit hook: {outcome.reason}")
                return

            while True:
                await self._recurse(signals, depth=0)
                if signals.aborted:
                    break

                stop = await self.dispatcher.dispatch(
                    HookEvent.STOP,
                    self._context(),
                    abort_signal=signals.tools,
                )
                if not stop.blocked:
                    break
                logger.info("Stop hook requested another round")
        except AbortedError:
            logger.debug("Turn aborted")
            self._mark_running_tools_aborted()
        except asyncio.CancelledError:
            self._mark_running_tools_aborted()
            raise
        except ConductorError as e:
            logger.error(f"Turn failed: {e}")
            self.store.add_error_block(e.message)
        except Exception as e:
            logger.exception("Unexpected error in agent loop")
            self.store.add_error_block(f"Unexpected error: {e}")
        finally:
            self._busy = False
            self._save_transcript()

    async def _recurse(self, signals: TurnSignals, depth: int) -> None:
        signals.raise_if_aborted()
        logger.debug(f"Model request (depth {depth})")

        response: ModelResponse = await self._request(signals)

        if response.tool_calls:
            for call in response.tool_calls:
                signals.raise_if_aborted()
                await self._run_tool(call, signals)

        await self._maybe_compress(response, signals)

        if response.tool_calls and not signals.aborted:
            await self._recurse(signals, depth + 1)

    async def _request(self, signals: TurnSignals) -> ModelResponse:
        messages: list[MessageDict] = [
            {"role": "system", "content": self.system_prompt()},
            *self.store.to_api_messages(),
        ]
        started: bool = False

        def on_text(delta: str) -> None:
            nonlocal started
            if not started:
                self.store.add_assistant_message()
                started = True
            self.store.append_text(delta)

        response: ModelResponse = await signals.model.race(
            self.backend.send(messages, tools=self.tools, on_text=on_text),
        )

        if not started and (response.content or response.tool_calls):
            self.store.add_assistant_message()
            if response.content:
                self.store.append_text(response.content)
        return response

    async def _maybe_compress(self, response: ModelResponse, signals: TurnSignals) -> None:
        if not self.compactor.should_compress(response.usage):
            return
        try:
            await self.compactor.compress(signals.model)
        except AbortedError:
            raise
        except Exception as e:
            logger.error(f"Compression failed: {e}", exc_info=True)

    async def _run_tool(self, call: ToolCall, signals: TurnSignals) -> None:
        tool_id: str = call.id or f"call_{uuid.uuid4().hex[:12]}"
        try:
            self.store.add_tool_block(tool_id, call.name, call.arguments)
        except ValidationError as e:
            logger.error(f"Skipping tool call: {e}")
            self.store.add_error_block(e.message)
            return

        try:
            params: dict[str, Any] = call.parse_arguments()
        except ValidationError as e:
            self._record_result(tool_id, ToolResult.error_result(e.message))
            return

        rejected: ToolResult | None = self.invoker.check(call.name, params)
        if rejected is not None:
            self._record_result(tool_id, rejected)
            return

        pre = await self.dispatcher.dispatch(
            HookEvent.PRE_TOOL_USE,
            self._context(tool_name=call.name, tool_id=tool_id, tool_input=params),
            abort_signal=signals.tools,
        )
        if pre.blocked:
            logger.info(f"{call.name} blocked by PreToolUse hook: {pre.reason}")
            return

        result: ToolResult = await self.invoker.invoke(
            call.name,
            params,
            abort_signal=signals.tools,
        )
        self._record_result(tool_id, result)

        await self.dispatcher.dispatch(
            HookEvent.POST_TOOL_USE,
            self._context(
                tool_name=call.name,
                tool_id=tool_id,
                tool_input=params,
                tool_response={
                    "success": result.success,
                    "content": result.content,
                    "error": result.error,
                },
            ),
            abort_signal=signals.tools,
        )

    def _record_result(self, tool_id: str, result: ToolResult) -> None:
        self.store.update_tool_block(
            tool_id,
            result=result.to_model_output(),
            success=result.success,
            error=result.error,
            short_result=result.short_result,
        )
        if result.diff is not None:
            self.store.add_diff_block(
                display_path(result.diff.path, self.cwd),
                result.diff.to_diff(),
                tool_id=tool_id,
            )

    def _mark_running_tools_aborted(self) -> None:
        for message in self.store.messages:
            for block in message.tool_blocks():
                if block.is_running:
                    self.store.update_tool_block(
                        block.id,
                        result=ABORTED_BY_USER_MESSAGE,
                        success=False,
                        error=ABORTED_BY_USER_MESSAGE,
                    )

    def _save_transcript(self) -> None:
        try:
            self.store.save(self.transcript_path)
        except OSError as e:
            logger.warning(f"Could not save transcript to {self.transcript_path}: {e}")
