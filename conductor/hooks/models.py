"""
Data models for the hook system.

``HookJsonInput`` is the document written to a hook's standard input,
``HookExecutionResult`` is what the runner reports back, and ``HookContext``
carries what the dispatcher needs to apply results to the conversation.
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from conductor.config.schema import HookEvent
from conductor.messages.blocks import Message


class HookJsonInput(BaseModel):
    """
    Payload serialized to a hook process's standard input.

    Optional fields are omitted from the JSON document when unset.

    Examples
    --------
    >>> payload = HookJsonInput(
    ...     session_id="abc",
    ...     transcript_path="/tmp/abc.json",
    ...     cwd="/work",
    ...     hook_event_name=HookEvent.PRE_TOOL_USE,
    ...     tool_name="Write",
    ...     tool_input={"file_path": "a.txt", "content": "hi"},
    ... )
    >>> payload.to_json()
    '{"session_id":"abc",...}'
    """

    session_id: str = Field(description="Session identifier")
    transcript_path: str = Field(description="Path of the session transcript")
    cwd: str = Field(description="Project root")
    hook_event_name: HookEvent = Field(description="Event that triggered the hook")
    tool_name: str | None = Field(default=None, description="Tool name")
    tool_input: dict[str, Any] | None = Field(default=None, description="Tool arguments")
    tool_response: dict[str, Any] | None = Field(default=None, description="Tool result")
    prompt: str | None = Field(default=None, description="Submitted user prompt")

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class HookExecutionResult(BaseModel):
    """
    Outcome of running one hook command. Immutable.

    Parameters
    ----------
    command : str
        The command that ran.
    exit_code : int | None
        Process exit status; ``None`` when it never exited on its own.
    stdout : str
        Captured standard output.
    stderr : str
        Captured standard error, or the spawn failure reason.
    duration_ms : int
        Wall time in milliseconds.
    timed_out : bool
        The process was killed after exceeding its timeout.
    aborted : bool
        The process was killed because the tool-execution signal fired.
    """

    model_config = ConfigDict(frozen=True)

    command: str = Field(description="Executed command")
    exit_code: int | None = Field(default=None, description="Exit code")
    stdout: str = Field(default="", description="Standard output")
    stderr: str = Field(default="", description="Standard error")
    duration_ms: int = Field(default=0, ge=0, description="Duration in milliseconds")
    timed_out: bool = Field(default=False, description="Killed after timeout")
    aborted: bool = Field(default=False, description="Killed by abort")

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and not self.aborted


class HookContext(BaseModel):
    """
    Everything a dispatch needs besides the event.

    Parameters
    ----------
    session_id : str
        Session identifier.
    transcript_path : Path
        Session transcript location.
    cwd : Path
        Project root.
    tool_name : str | None, optional
        Tool name, for PreToolUse and PostToolUse.
    tool_id : str | None, optional
        Tool call id whose block a PreToolUse block updates.
    tool_input : dict[str, Any] | None, optional
        Tool arguments.
    tool_response : dict[str, Any] | None, optional
        Tool result, for PostToolUse.
    prompt : str | None, optional
        Submitted prompt, for UserPromptSubmit.
    user_message : Message | None, optional
        The prompt's user turn; retracted when UserPromptSubmit blocks.
    """

    session_id: str = Field(description="Session identifier")
    transcript_path: Path = Field(description="Transcript path")
    cwd: Path = Field(description="Project root")
    tool_name: str | None = Field(default=None, description="Tool name")
    tool_id: str | None = Field(default=None, description="Tool call id")
    tool_input: dict[str, Any] | None = Field(default=None, description="Tool arguments")
    tool_response: dict[str, Any] | None = Field(default=None, description="Tool result")
    prompt: str | None = Field(default=None, description="User prompt")
    user_message: Message | None = Field(default=None, description="Prompt message")

    def to_json_input(self, event: HookEvent) -> HookJsonInput:
        return HookJsonInput(
            session_id=self.session_id,
            transcript_path=str(self.transcript_path),
            cwd=str(self.cwd),
            hook_event_name=event,
            tool_name=self.tool_name,
            tool_input=self.tool_input,
            tool_response=self.tool_response,
            prompt=self.prompt,
        )


class HookOutcome(BaseModel):
    """
    Results of one dispatch and whether they blocked the event.

    Parameters
    ----------
    results : list[HookExecutionResult]
        Results in configuration order.
    blocked : bool
        An exit-code-2 result blocked the tool, prompt or stop.
    reason : str | None
        Message of the authoritative blocking result.
    """

    results: list[HookExecutionResult] = Field(default_factory=list)
    blocked: bool = Field(default=False)
    reason: str | None = Field(default=None)
