"""
Protocol definitions for pluggable collaborators.

The agent loop depends only on these protocols, so tests and alternative
providers can be injected without touching orchestration code.
"""

from typing import Callable, Protocol

from conductor.llm.models import ModelResponse
from conductor.types import MessageDict, ToolDefinitions


class ModelBackend(Protocol):
    """
    Interface every model backend implements.

    Implementations raise ``ConnectionError`` or ``APIError`` on failure.
    They need not observe abort signals themselves: callers race each call
    against the turn's model signal, which cancels the awaiting task.
    """

    async def send(
        self,
        messages: list[MessageDict],
        tools: ToolDefinitions | None = None,
        on_text: Callable[[str], None] | None = None,
    ) -> ModelResponse:
        """
        Request one completion.

        Parameters
        ----------
        messages : list[MessageDict]
            Conversation in chat-completion format.
        tools : ToolDefinitions | None, optional
            Tool schemas offered to the model.
        on_text : Callable[[str], None] | None, optional
            Receives text deltas as they stream in.

        Returns
        -------
        ModelResponse
            Text, tool calls in model order, and usage.
        """
        ...

    async def compress(self, messages: list[MessageDict]) -> str:
        """Summarize the given messages into a single text."""
        ...

    async def close(self) -> None:
        ...
