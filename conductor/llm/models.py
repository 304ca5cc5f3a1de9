"""
Data models for model backend responses.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, Field

from conductor.exceptions import ValidationError


class TokenUsage(BaseModel):
    """
    Token usage statistics for one backend request.

    Examples
    --------
    >>> usage = TokenUsage(prompt_tokens=100, completion_tokens=50, total_tokens=150)
    >>> (usage + usage).total_tokens
    300
    """

    prompt_tokens: int = Field(default=0, ge=0, description="Prompt tokens")
    completion_tokens: int = Field(default=0, ge=0, description="Completion tokens")
    total_tokens: int = Field(default=0, ge=0, description="Total tokens")
    cached_tokens: int = Field(default=0, ge=0, description="Cached tokens")

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            cached_tokens=self.cached_tokens + other.cached_tokens,
        )


class ToolCall(BaseModel):
    """
    A tool call requested by the model.

    Parameters
    ----------
    id : str
        Tool call identifier, unique per session.
    name : str
        Name of the tool being called.
    arguments : str, default="{}"
        Raw JSON arguments as produced by the model.

    Examples
    --------
    >>> call = ToolCall(id="call_1", name="Read", arguments='{"file_path": "a.txt"}')
    >>> call.parse_arguments()
    {'file_path': 'a.txt'}
    """

    id: str = Field(description="Tool call identifier")
    name: str = Field(description="Tool name")
    arguments: str = Field(default="{}", description="Raw JSON arguments")

    def parse_arguments(self) -> dict[str, Any]:
        """
        Decode the arguments.

        Raises
        ------
        ValidationError
            If the arguments are not a JSON object.
        """
        if not self.arguments.strip():
            return {}
        try:
            parsed: Any = json.loads(self.arguments)
        except json.JSONDecodeError as e:
            raise ValidationError(
                f"Invalid JSON arguments for {self.name}: {e}",
                field="arguments",
                cause=e,
            ) from e
        if not isinstance(parsed, dict):
            raise ValidationError(
                f"Arguments for {self.name} must be a JSON object",
                field="arguments",
            )
        return parsed


class ModelResponse(BaseModel):
    """
    One complete backend response.

    Parameters
    ----------
    content : str, default=""
        Assistant text.
    tool_calls : list[ToolCall], default=[]
        Tool calls in the order the model returned them.
    usage : TokenUsage | None, optional
        Token usage, when reported.
    finish_reason : str | None, optional
        Backend finish reason.
    """

    content: str = Field(default="", description="Assistant text")
    tool_calls: list[ToolCall] = Field(default_factory=list, description="Requested tool calls")
    usage: TokenUsage | None = Field(default=None, description="Token usage")
    finish_reason: str | None = Field(default=None, description="Finish reason")
