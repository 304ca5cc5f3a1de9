"""
Text user interface for interactive sessions.

Besides the welcome and help screens, the TUI is the human consumer of the
confirmation queue: it presents the active request, asks allow / allow
always / deny, and resolves the item.

All terminal input goes through one ``PromptSession`` and one prompt is
open at a time. A confirmation prompt whose item is resolved elsewhere (an
abort, a cancelled tool call) is closed before any other prompt can read.
"""

import asyncio
import logging
from typing import Callable

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import AnyFormattedText
from rich import box
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.text import Text

from conductor.config.schema import Configuration
from conductor.safety.confirmation import ConfirmationItem, ConfirmationQueue
from conductor.safety.models import PermissionDecision
from conductor.ui.renderer import render_request

logger = logging.getLogger(__name__)

HELP_TEXT: str = """
## Commands

- `/help` - Show this help
- `/exit` or `/quit` - Exit
- `/config` - Show current configuration
- `/stats` - Show session statistics
- `/tools` - List available tools

## Tips

- `# note` saves a project memory note, `## note` a user memory note
- Ctrl-C aborts the running turn
- Restricted tools ask for confirmation unless an allow rule matches
"""

CONFIRM_PROMPT: str = "Allow? [y] yes  [a] always  [n] no: "
CONFIRM_CHOICES: tuple[str, ...] = ("y", "a", "n")


class TUI:
    """
    Terminal screens, line input and the interactive confirmation consumer.

    Parameters
    ----------
    config : Configuration
        Configuration object.
    console : Console
        Rich console instance for output.
    prompt_session : PromptSession | None, optional
        Line reader. Created on first use when omitted.

    Examples
    --------
    >>> tui = TUI(config, get_console())
    >>> consumer = asyncio.create_task(
    ...     tui.run_confirmations(session.queue, on_interrupt=session.abort),
    ... )
    >>> line = await tui.read_line("→ ")
    """

    def __init__(
        self,
        config: Configuration,
        console: Console,
        prompt_session: PromptSession | None = None,
    ) -> None:
        self.config: Configuration = config
        self.console: Console = console
        self._prompt_session: PromptSession | None = prompt_session
        self._input_lock: asyncio.Lock = asyncio.Lock()

    @property
    def reading(self) -> bool:
        """Whether a prompt is open or waiting to open."""
        return self._input_lock.locked()

    def print_welcome(self, title: str, lines: list[str] | None = None) -> None:
        body: str = "\n".join(lines) if lines else ""
        self.console.print(
            Panel(
                Text(body, style="code"),
                title=Text(title, style="highlight"),
                title_align="left",
                border_style="border",
                box=box.ROUNDED,
                padding=(1, 2),
            ),
        )

    def show_help(self) -> None:
        self.console.print(Markdown(HELP_TEXT))

    async def read_line(self, message: AnyFormattedText) -> str:
        """
        Read one line from the terminal.

        Raises
        ------
        EOFError
            On Ctrl-D.
        KeyboardInterrupt
            On Ctrl-C.
        """
        async with self._input_lock:
            if self._prompt_session is None:
                self._prompt_session = PromptSession()
            return await self._prompt_session.prompt_async(message)

    async def _read_in_task(self, message: str) -> str | KeyboardInterrupt:
        # a KeyboardInterrupt escaping a task would stop the event loop
        try:
            return await self.read_line(message)
        except KeyboardInterrupt as e:
            return e

    async def _read_while_pending(self, item: ConfirmationItem, message: str) -> str | None:
        reader: asyncio.Task[str | KeyboardInterrupt] = asyncio.ensure_future(
            self._read_in_task(message),
        )
        await asyncio.wait({reader, item.result}, return_when=asyncio.FIRST_COMPLETED)
        if reader.done():
            line = reader.result()
            if isinstance(line, KeyboardInterrupt):
                raise line
            return line

        reader.cancel()
        await asyncio.gather(reader, return_exceptions=True)
        logger.debug(f"Closed prompt for {item.tool_name}: resolved elsewhere")
        return None

    async def run_confirmations(
        self,
        queue: ConfirmationQueue,
        on_interrupt: Callable[[], None] | None = None,
    ) -> None:
        """
        Drain the confirmation queue until cancelled.

        Each active item is presented once; the answer resolves it and the
        next queued item becomes active. Ctrl-C at a confirmation prompt
        denies the item and then calls ``on_interrupt``.
        """
        while True:
            item: ConfirmationItem = await queue.next()
            interrupted: bool = False
            try:
                decision: PermissionDecision | None = await self.ask(item)
            except EOFError:
                decision = PermissionDecision.deny("No answer from user")
            except KeyboardInterrupt:
                decision = PermissionDecision.aborted()
                interrupted = True

            if decision is None or not queue.resolve(item, decision):
                self.console.print(Text("Confirmation cancelled", style="muted"))
            if interrupted and on_interrupt is not None:
                on_interrupt()

    async def ask(self, item: ConfirmationItem) -> PermissionDecision | None:
        """
        Present one request and collect the answer.

        Returns
        -------
        PermissionDecision | None
            ``allow`` (remembered for ``a``) or ``deny`` with the user's
            reason; ``None`` if the item was resolved before the user
            answered.
        """
        request = item.request
        self.console.print()
        self.console.print(
            Panel(
                render_request(
                    request.tool_name,
                    request.description,
                    request.diff,
                    request.command,
                ),
                title=Text("Approval required", style="warning"),
                title_align="left",
                border_style="warning",
                box=box.ROUNDED,
                padding=(1, 2),
            ),
        )

        while True:
            line: str | None = await self._read_while_pending(item, CONFIRM_PROMPT)
            if line is None:
                return None
            answer: str = line.strip().lower() or "y"
            if answer in CONFIRM_CHOICES:
                break
            self.console.print(Text("Please answer y, a or n", style="warning"))

        if answer == "y":
            return PermissionDecision.allow()
        if answer == "a":
            return PermissionDecision.allow(remember=True)

        reason: str | None = await self._read_while_pending(item, "Tell the agent why (optional): ")
        if reason is None:
            return None
        logger.debug(f"User denied {request.tool_name}")
        return PermissionDecision.deny(reason.strip() or f"User denied {request.tool_name}")
