"""
Incremental renderer for the block store.

The store notifies after every mutation, including each streamed text
delta. ``BlockRenderer`` remembers what it already printed and only writes
what is new: the unseen suffix of a text block, a header when a tool starts,
a result panel when it finishes, and every other block exactly once.
"""

import json
import logging
from typing import Any

from rich import box
from rich.console import Console, Group
from rich.panel import Panel
from rich.rule import Rule
from rich.syntax import Syntax
from rich.text import Text

from conductor.messages.blocks import (
    CompressBlock,
    DiffBlock,
    ErrorBlock,
    MemoryBlock,
    Role,
    TextBlock,
    ToolBlock,
)
from conductor.messages.store import BlockStore

logger = logging.getLogger(__name__)

# Result panels show at most this many lines
MAX_RESULT_LINES: int = 40


def _summarize_arguments(parameters_json: str) -> str:
    try:
        params: Any = json.loads(parameters_json or "{}")
    except json.JSONDecodeError:
        return parameters_json
    if not isinstance(params, dict):
        return str(params)
    parts: list[str] = []
    for key, value in params.items():
        text = value if isinstance(value, str) else json.dumps(value)
        first_line = text.splitlines()[0] if text else ""
        if len(first_line) > 60 or "\n" in text:
            first_line = first_line[:60] + "…"
        parts.append(f"{key}={first_line}")
    return ", ".join(parts)


def _clip(text: str) -> str:
    lines = text.splitlines()
    if len(lines) <= MAX_RESULT_LINES:
        return text
    hidden = len(lines) - MAX_RESULT_LINES
    return "\n".join(lines[:MAX_RESULT_LINES]) + f"\n… {hidden} more lines"


class BlockRenderer:
    """
    Store subscriber that prints new conversation content.

    Parameters
    ----------
    console : Console
        Output console.
    tool_kinds : dict[str, str] | None, optional
        Tool name to kind value, used for border colors.

    Examples
    --------
    >>> renderer = BlockRenderer(get_console())
    >>> unsubscribe = store.subscribe(renderer)
    >>> renderer.expect_prompt("fix the tests")
    """

    def __init__(self, console: Console, tool_kinds: dict[str, str] | None = None) -> None:
        self.console: Console = console
        self.tool_kinds: dict[str, str] = tool_kinds or {}
        self._text_printed: dict[int, int] = {}
        self._tool_state: dict[int, str] = {}
        self._seen: set[int] = set()
        self._expected_prompt: str | None = None
        self._open_text: int | None = None

    def expect_prompt(self, prompt: str) -> None:
        """Skip echoing the next user message with this text; the user typed it."""
        self._expected_prompt = prompt

    def __call__(self, store: BlockStore) -> None:
        for message in store.messages:
            if message.role == Role.USER:
                self._render_user(message.text, id(message))
                continue
            for block in message.blocks:
                self._render_block(block)

    def _close_text(self) -> None:
        if self._open_text is not None:
            self.console.print()
            self._open_text = None

    def _render_user(self, text: str, key: int) -> None:
        if key in self._seen:
            return
        self._seen.add(key)
        if self._expected_prompt is not None and text == self._expected_prompt:
            self._expected_prompt = None
            return
        self._close_text()
        self.console.print(Text.assemble(("› ", "user"), (text, "muted")))

    def _render_block(self, block: Any) -> None:
        key = id(block)
        if isinstance(block, TextBlock):
            self._render_text(block, key)
        elif isinstance(block, ToolBlock):
            self._render_tool(block, key)
        elif key not in self._seen:
            self._seen.add(key)
            self._close_text()
            self._render_once(block)

    def _render_text(self, block: TextBlock, key: int) -> None:
        printed: int = self._text_printed.get(key, 0)
        if len(block.content) <= printed:
            return
        if self._open_text != key:
            self._close_text()
            if printed == 0:
                self.console.print()
            self._open_text = key
        self.console.print(block.content[printed:], end="", markup=False, style="assistant")
        self._text_printed[key] = len(block.content)

    def _render_tool(self, block: ToolBlock, key: int) -> None:
        state: str | None = self._tool_state.get(key)
        border: str = f"tool.{self.tool_kinds[block.name]}" if block.name in self.tool_kinds else "tool"

        if state is None:
            self._close_text()
            self.console.print()
            self.console.print(
                Text.assemble(
                    ("⏺ ", "muted"),
                    (block.name, border),
                    ("  ", "muted"),
                    (_summarize_arguments(block.parameters_json), "muted"),
                ),
            )
            self._tool_state[key] = state = "running"

        if state == "running" and not block.is_running:
            self._tool_state[key] = "done"
            self._close_text()
            icon, style = ("✓", "success") if block.success else ("✗", "error")
            body: str = block.short_result or _clip(block.result or block.error or "")
            self.console.print(
                Panel(
                    Text(body or "(no output)", style="code" if block.success else "error"),
                    title=Text.assemble((f"{icon} ", style), (block.name, "tool")),
                    title_align="left",
                    border_style=border,
                    box=box.ROUNDED,
                    padding=(0, 1),
                ),
            )

    def _render_once(self, block: Any) -> None:
        if isinstance(block, ErrorBlock):
            self.console.print(Text(f"Error: {block.content}", style="error"))
        elif isinstance(block, DiffBlock):
            self.console.print(
                Panel(
                    Syntax(block.diff, "diff", theme="ansi_dark", word_wrap=True),
                    title=Text(block.path, style="tool.write"),
                    title_align="left",
                    border_style="border",
                    box=box.ROUNDED,
                ),
            )
        elif isinstance(block, MemoryBlock):
            if block.success:
                self.console.print(
                    Text(f"Saved {block.scope} memory to {block.storage_path}: {block.content}", style="memory"),
                )
            else:
                self.console.print(Text(f"Could not save memory: {block.content}", style="error"))
        elif isinstance(block, CompressBlock):
            self.console.print(Rule(Text("earlier conversation compressed", style="compress")))
        else:
            logger.debug(f"No renderer for block {type(block).__name__}")

    def finish(self) -> None:
        """End any open text line after a turn."""
        self._close_text()


def render_request(tool_name: str, description: str, diff: str | None, command: str | None) -> Group:
    """Body of a confirmation panel."""
    parts: list[Any] = [Text(tool_name, style="tool")]
    if description:
        parts.append(Text(description, style="code"))
    if command:
        parts.append(Text(f"$ {command}", style="warning"))
    if diff:
        parts.append(Syntax(diff, "diff", theme="ansi_dark", word_wrap=True))
    return Group(*parts)
