"""
Main entry point for the Conductor coding agent.

This module provides the command-line interface with interactive and
single-run modes. Ctrl-C during a turn aborts it; Ctrl-C at the prompt
exits.
"""

import asyncio
import logging
import signal
import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import click
from dotenv import load_dotenv
from prompt_toolkit.formatted_text import HTML
from rich.text import Text

from conductor import __version__
from conductor.agent.session import Session
from conductor.config.loader import load_configuration
from conductor.config.schema import Configuration, PermissionMode
from conductor.exceptions import ConfigurationError
from conductor.messages.blocks import ErrorBlock
from conductor.ui.console import get_console
from conductor.ui.renderer import BlockRenderer
from conductor.ui.tui import TUI

logger = logging.getLogger(__name__)

console = get_console()

PROMPT = HTML("<ansibrightblue><b>→</b></ansibrightblue> ")


def configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@contextmanager
def abort_on_interrupt(session: Session) -> Iterator[None]:
    """Route SIGINT to ``session.abort`` while a turn runs."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, session.abort)
        installed = True
    except (NotImplementedError, RuntimeError):
        installed = False
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


class CLI:
    """
    Command-line interface for a Conductor session.

    Parameters
    ----------
    config : Configuration
        Configuration object.

    Examples
    --------
    >>> cli = CLI(load_configuration())
    >>> await cli.run_single("fix the failing test")
    """

    def __init__(self, config: Configuration) -> None:
        self.config: Configuration = config
        self.tui: TUI = TUI(config, console)
        self.renderer: BlockRenderer | None = None

    def _attach(self, session: Session) -> asyncio.Task[None]:
        self.renderer = BlockRenderer(
            console,
            tool_kinds={tool.name: tool.kind.value for tool in session.registry.get_tools()},
        )
        session.store.subscribe(self.renderer)
        return asyncio.create_task(
            self.tui.run_confirmations(session.queue, on_interrupt=session.abort),
        )

    async def _submit(self, session: Session, prompt: str) -> None:
        if self.renderer is not None:
            self.renderer.expect_prompt(prompt)
        with abort_on_interrupt(session):
            await session.submit(prompt)
        if self.renderer is not None:
            self.renderer.finish()

    async def run_single(self, prompt: str) -> bool:
        """
        Run one prompt to completion.

        Returns
        -------
        bool
            ``False`` if the turn ended with an error block.
        """
        async with Session(self.config) as session:
            consumer = self._attach(session)
            try:
                await self._submit(session, prompt)
            finally:
                consumer.cancel()
                await asyncio.gather(consumer, return_exceptions=True)

            messages = session.store.messages
            return not (messages and any(isinstance(b, ErrorBlock) for b in messages[-1].blocks))

    async def run_interactive(self) -> None:
        self.tui.print_welcome(
            "Conductor",
            lines=[
                f"model: {self.config.model.name}",
                f"cwd: {self.config.cwd}",
                f"permissions: {self.config.permission_mode.value}",
                "commands: /help /config /stats /tools /exit",
            ],
        )

        async with Session(self.config) as session:
            consumer = self._attach(session)
            try:
                while True:
                    try:
                        console.print()
                        user_input: str = (await self.tui.read_line(PROMPT)).strip()
                    except (EOFError, KeyboardInterrupt):
                        break
                    if not user_input:
                        continue

                    if user_input.startswith("/"):
                        if not self._handle_command(user_input, session):
                            break
                        continue

                    await self._submit(session, user_input)
            finally:
                consumer.cancel()
                await asyncio.gather(consumer, return_exceptions=True)

        console.print(Text("Bye.", style="muted"))

    def _handle_command(self, command: str, session: Session) -> bool:
        """
        Handle slash commands.

        Returns
        -------
        bool
            True to continue, False to exit.
        """
        cmd_name: str = command.lower().split(maxsplit=1)[0]

        if cmd_name in ("/exit", "/quit"):
            return False
        if cmd_name == "/help":
            self.tui.show_help()
        elif cmd_name == "/config":
            console.print("\n[bold]Current Configuration[/bold]")
            console.print(f"  Model: {self.config.model.name}")
            console.print(f"  Temperature: {self.config.model.temperature}")
            console.print(f"  Token limit: {self.config.model.token_limit}")
            console.print(f"  Permissions: {self.config.permission_mode.value}")
            console.print(f"  Working Dir: {self.config.cwd}")
            rules: list[str] = [*session.gate.allow_rules, *session.gate.session_rules]
            console.print(f"  Allow rules: {', '.join(rules) or '(none)'}")
        elif cmd_name == "/stats":
            stats: dict[str, Any] = session.get_stats()
            console.print("\n[bold]Session Statistics[/bold]")
            for key, value in stats.items():
                console.print(f"  {key}: {value}")
        elif cmd_name == "/tools":
            tools = session.registry.get_tools()
            console.print(f"\n[bold]Available tools ({len(tools)})[/bold]")
            for tool in tools:
                marker: str = " (asks permission)" if tool.restricted else ""
                console.print(f"  • {tool.name}{marker}")
        else:
            console.print(f"[error]Unknown command: {cmd_name}[/error]")
        return True


@click.command()
@click.argument("prompt", required=False)
@click.option(
    "--cwd",
    "-c",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (defaults to the current directory)",
)
@click.option(
    "--dangerously-skip-permissions",
    is_flag=True,
    default=False,
    help="Run restricted tools without asking",
)
@click.option("--debug", is_flag=True, default=False, help="Enable debug logging")
@click.version_option(__version__, prog_name="conductor")
def main(
    prompt: str | None,
    cwd: Path | None,
    dangerously_skip_permissions: bool,
    debug: bool,
) -> None:
    """
    Conductor - coding agent for the terminal.

    Run interactively, or pass PROMPT to run a single turn.
    """
    load_dotenv()
    configure_logging(debug)

    mode = PermissionMode.BYPASS if dangerously_skip_permissions else PermissionMode.DEFAULT
    try:
        config: Configuration = load_configuration(cwd=cwd, permission_mode=mode, debug=debug)
    except ConfigurationError as e:
        console.print(f"[error]Configuration Error: {e}[/error]")
        sys.exit(1)

    if not config.api_key:
        console.print("[error]API key not configured. Set the API_KEY environment variable.[/error]")
        sys.exit(1)

    cli = CLI(config)

    try:
        if prompt:
            if not asyncio.run(cli.run_single(prompt)):
                sys.exit(1)
        else:
            asyncio.run(cli.run_interactive())
    except KeyboardInterrupt:
        console.print(Text("Interrupted.", style="muted"))
        sys.exit(130)


if __name__ == "__main__":
    main()
