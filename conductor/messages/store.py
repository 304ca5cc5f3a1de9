"""
Owned, append/mutate store of conversation messages.

``BlockStore`` is the single owner of the message list for a session.
Orchestration code mutates it only through the methods below; renderers
subscribe and are notified after every mutation. A subscriber can never
break orchestration: its exceptions are logged and dropped.
"""

import json
import logging
from pathlib import Path
from typing import Any, Callable

from conductor.constants import COMPRESS_KEEP_LAST_BLOCKS, DEFAULT_ENCODING
from conductor.exceptions import ValidationError
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
from conductor.types import MessageDict

logger = logging.getLogger(__name__)

Subscriber = Callable[["BlockStore"], None]


class BlockStore:
    """
    Conversation message store with an explicit mutation API.

    Parameters
    ----------
    messages : list[Message] | None, optional
        Initial messages, e.g. a restored transcript.

    Examples
    --------
    >>> store = BlockStore()
    >>> store.add_user_message("hello")
    >>> store.add_tool_block("call_1", "Read", '{"path": "a.txt"}')
    >>> store.update_tool_block("call_1", result="...", success=True)
    """

    def __init__(self, messages: list[Message] | None = None) -> None:
        self._messages: list[Message] = []
        self._tool_blocks: dict[str, ToolBlock] = {}
        self._subscribers: list[Subscriber] = []
        for message in messages or []:
            self._messages.append(message)
            for block in message.tool_blocks():
                self._tool_blocks[block.id] = block

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the message list. Mutate through the store only."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """
        Register a callback invoked after every mutation.

        Returns
        -------
        Callable[[], None]
            Function removing the subscription.
        """
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _notify(self) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(self)
            except Exception:
                logger.exception("BlockStore subscriber failed")

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_user_message(self, content: str) -> Message:
        """Append a user-authored turn and return it."""
        message = Message(role=Role.USER, blocks=[TextBlock(content=content)])
        self._messages.append(message)
        self._notify()
        return message

    def add_assistant_message(self) -> Message:
        """Append an empty assistant message and return it."""
        message = Message(role=Role.ASSISTANT)
        self._messages.append(message)
        self._notify()
        return message

    def current_assistant_message(self) -> Message:
        """Return the final message if it is an assistant one, else start a new one."""
        if self._messages and self._messages[-1].role == Role.ASSISTANT:
            return self._messages[-1]
        return self.add_assistant_message()

    def remove_message(self, message: Message) -> bool:
        """
        Retract one specific message.

        Identity, not equality, selects the message, so an identical earlier
        prompt is never removed by mistake.

        Returns
        -------
        bool
            ``True`` if the message was found and removed.
        """
        for index, candidate in enumerate(self._messages):
            if candidate is message:
                del self._messages[index]
                for block in candidate.tool_blocks():
                    self._tool_blocks.pop(block.id, None)
                self._notify()
                return True
        return False

    # ------------------------------------------------------------------
    # Blocks
    # ------------------------------------------------------------------

    def _append_block(self, block: Block) -> None:
        self.current_assistant_message().blocks.append(block)
        self._notify()

    def append_text(self, delta: str) -> None:
        """Stream text into the trailing text block of the assistant message."""
        if not delta:
            return
        message = self.current_assistant_message()
        if message.blocks and isinstance(message.blocks[-1], TextBlock):
            message.blocks[-1].content += delta
            self._notify()
        else:
            self._append_block(TextBlock(content=delta))

    def add_tool_block(
        self,
        tool_id: str,
        name: str,
        parameters_json: str = "{}",
    ) -> ToolBlock:
        """
        Record a pending tool call.

        Raises
        ------
        ValidationError
            If a tool block with the same id already exists.
        """
        if tool_id in self._tool_blocks:
            raise ValidationError(
                f"Duplicate tool call id: {tool_id}",
                field="id",
            )
        block = ToolBlock(id=tool_id, name=name, parameters_json=parameters_json)
        self._tool_blocks[tool_id] = block
        self._append_block(block)
        return block

    def get_tool_block(self, tool_id: str) -> ToolBlock | None:
        return self._tool_blocks.get(tool_id)

    def update_tool_block(self, tool_id: str, **fields: Any) -> ToolBlock:
        """
        Mutate a tool block in place.

        Recording a ``result`` or ``success`` also clears ``is_running``
        unless the caller sets it explicitly.
        """
        block = self._tool_blocks.get(tool_id)
        if block is None:
            raise ValidationError(f"Unknown tool call id: {tool_id}", field="id")

        for key, value in fields.items():
            if key not in ToolBlock.model_fields or key in ("type", "id"):
                raise ValidationError(f"Cannot update tool block field: {key}", field=key)
            setattr(block, key, value)

        if "is_running" not in fields and ("result" in fields or "success" in fields):
            block.is_running = False

        self._notify()
        return block

    def add_error_block(self, content: str) -> ErrorBlock:
        """Append a user-visible error to the current assistant message."""
        block = ErrorBlock(content=content)
        self._append_block(block)
        return block

    def add_diff_block(self, path: str, diff: str, tool_id: str | None = None) -> DiffBlock:
        block = DiffBlock(path=path, diff=diff, tool_id=tool_id)
        self._append_block(block)
        return block

    def add_memory_message(
        self,
        content: str,
        success: bool,
        scope: str,
        storage_path: str | None = None,
    ) -> Message:
        """Append a new assistant message holding a memory block."""
        message = Message(
            role=Role.ASSISTANT,
            blocks=[
                MemoryBlock(
                    content=content,
                    success=success,
                    scope=scope,
                    storage_path=storage_path,
                ),
            ],
        )
        self._messages.append(message)
        self._notify()
        return message

    def insert_compress_message(self, index: int, content: str) -> Message:
        """Insert an assistant message holding a compress block at ``index``."""
        message = Message(role=Role.ASSISTANT, blocks=[CompressBlock(content=content)])
        self._messages.insert(index, message)
        self._notify()
        return message

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def messages_to_compress(
        self,
        keep_last: int = COMPRESS_KEEP_LAST_BLOCKS,
    ) -> tuple[list[Message], int]:
        """
        Select messages older than the last ``keep_last`` text/tool blocks.

        Returns
        -------
        tuple[list[Message], int]
            The messages to summarize and the index where the compress
            message belongs.
        """
        count: int = 0
        for index in range(len(self._messages) - 1, -1, -1):
            for block in self._messages[index].blocks:
                if isinstance(block, (TextBlock, ToolBlock)):
                    count += 1
                    if count >= keep_last:
                        return self._messages[:index], index
        return [], 0

    def to_api_messages(self, messages: list[Message] | None = None) -> list[MessageDict]:
        """
        Convert messages into chat-completion format.

        Walks backwards and stops at the newest compress block, whose summary
        stands in for everything before it. Running tool calls are omitted.
        Error, diff and memory blocks are never included.
        """
        source: list[Message] = self._messages if messages is None else messages
        converted: list[MessageDict] = []

        for message in reversed(source):
            compress = next(
                (b for b in message.blocks if isinstance(b, CompressBlock)),
                None,
            )
            if message.role == Role.ASSISTANT and compress is not None:
                converted.insert(
                    0,
                    {
                        "role": "system",
                        "content": f"[Compressed Message Summary] {compress.content}",
                    },
                )
                break

            if message.role == Role.USER:
                if message.text:
                    converted.insert(0, {"role": "user", "content": message.text})
                continue

            completed: list[ToolBlock] = [
                b for b in message.tool_blocks() if not b.is_running
            ]
            tool_messages: list[MessageDict] = [
                {
                    "role": "tool",
                    "tool_call_id": block.id,
                    "content": block.result or "",
                }
                for block in completed
            ]

            assistant: MessageDict = {"role": "assistant", "content": message.text}
            if completed:
                assistant["tool_calls"] = [
                    {
                        "id": block.id,
                        "type": "function",
                        "function": {
                            "name": block.name,
                            "arguments": _safe_arguments(block.parameters_json),
                        },
                    }
                    for block in completed
                ]

            if message.text or completed:
                converted[0:0] = [assistant, *tool_messages]

        return converted

    def save(self, path: Path) -> None:
        """Write the transcript as JSON."""
        path.parent.mkdir(parents=True, exist_ok=True)
        payload = [m.model_dump(mode="json") for m in self._messages]
        path.write_text(json.dumps(payload, indent=2), encoding=DEFAULT_ENCODING)

    @classmethod
    def load(cls, path: Path) -> "BlockStore":
        """Restore a store from a transcript written by ``save``."""
        payload = json.loads(path.read_text(encoding=DEFAULT_ENCODING))
        return cls([Message.model_validate(item) for item in payload])


def _safe_arguments(arguments: str) -> str:
    if not arguments:
        return "{}"
    try:
        json.loads(arguments)
    except json.JSONDecodeError:
        logger.error(f"Invalid tool arguments: {arguments}")
        return "{}"
    return arguments
