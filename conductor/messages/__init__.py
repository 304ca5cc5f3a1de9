"""Conversation messages, blocks and the block store."""

from conductor.messages.blocks import (
    Block,
    CompressBlock,
    DiffBlock,
    ErrorBlock,
    MemoryBlock,
    Message,
    Role,
    TextBlock,
    ToolBlock,
)
from conductor.messages.store import BlockStore

__all__ = [
    "Block",
    "BlockStore",
    "CompressBlock",
    "DiffBlock",
    "ErrorBlock",
    "MemoryBlock",
    "Message",
    "Role",
    "TextBlock",
    "ToolBlock",
]
