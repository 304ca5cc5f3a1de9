"""
Message and block data model.

A conversation is an ordered list of ``Message`` objects. Each message owns
an ordered list of blocks, a tagged union discriminated on ``type``.
Assistant messages are mutated in place as blocks arrive and are never
reordered.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class ImageAttachment(BaseModel):
    """Image produced by a tool, base64 encoded."""

    data: str = Field(description="Base64 data or data URL")
    media_type: str = Field(default="image/png", description="MIME type")


class TextBlock(BaseModel):
    """Plain text authored by the user or the model."""

    type: Literal["text"] = "text"
    content: str = Field(default="", description="Text content")


class ToolBlock(BaseModel):
    """
    One tool call and, once finished, its result.

    Parameters
    ----------
    id : str
        The model's tool-call id. Unique per session.
    name : str
        Tool name as requested by the model.
    parameters_json : str
        Raw JSON arguments as sent by the model.
    result : str | None
        Content reported back to the model.
    success : bool | None
        ``None`` while running.
    error : str | None
        Error text for failed calls.
    is_running : bool
        ``True`` until a result is recorded.
    short_result : str | None
        One-line summary for display.
    images : list[ImageAttachment]
        Images attached to the result.
    """

    type: Literal["tool"] = "tool"
    id: str = Field(description="Tool call id")
    name: str = Field(description="Tool name")
    parameters_json: str = Field(default="{}", description="Raw JSON arguments")
    result: str | None = Field(default=None, description="Tool result content")
    success: bool | None = Field(default=None, description="Whether the call succeeded")
    error: str | None = Field(default=None, description="Error message")
    is_running: bool = Field(default=True, description="Whether still executing")
    short_result: str | None = Field(default=None, description="Short summary")
    images: list[ImageAttachment] = Field(default_factory=list, description="Images")


class DiffBlock(BaseModel):
    """Unified diff of a file changed by a tool."""

    type: Literal["diff"] = "diff"
    path: str = Field(description="Changed file path")
    diff: str = Field(description="Unified diff text")
    tool_id: str | None = Field(default=None, description="Originating tool call id")


class ErrorBlock(BaseModel):
    """User-visible error; never sent to the model."""

    type: Literal["error"] = "error"
    content: str = Field(description="Error text")


class CompressBlock(BaseModel):
    """Summary replacing every message before it when talking to the model."""

    type: Literal["compress"] = "compress"
    content: str = Field(description="Compressed history summary")


class MemoryBlock(BaseModel):
    """Outcome of saving a memory note."""

    type: Literal["memory"] = "memory"
    content: str = Field(description="Memory text or failure reason")
    success: bool = Field(default=True, description="Whether the note was saved")
    scope: Literal["project", "user"] = Field(default="project", description="Memory scope")
    storage_path: str | None = Field(default=None, description="File the note was written to")


Block = Annotated[
    Union[TextBlock, ToolBlock, DiffBlock, ErrorBlock, CompressBlock, MemoryBlock],
    Field(discriminator="type"),
]


class Message(BaseModel):
    """
    A single conversational turn.

    Examples
    --------
    >>> msg = Message(role=Role.USER, blocks=[TextBlock(content="hello")])
    >>> msg.text
    'hello'
    """

    role: Role = Field(description="Message author")
    blocks: list[Block] = Field(default_factory=list, description="Ordered blocks")

    @property
    def text(self) -> str:
        """Concatenated content of all text blocks."""
        return "\n".join(b.content for b in self.blocks if isinstance(b, TextBlock))

    def tool_blocks(self) -> list[ToolBlock]:
        return [b for b in self.blocks if isinstance(b, ToolBlock)]
