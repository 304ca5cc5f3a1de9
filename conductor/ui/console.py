"""
Shared rich console.
"""

from rich.console import Console

from conductor.ui.theme import CONDUCTOR_THEME

_console: Console | None = None


def get_console() -> Console:
    """
    Get the singleton console configured with the Conductor theme.

    Examples
    --------
    >>> console = get_console()
    >>> console.print("[highlight]conductor[/highlight]")
    """
    global _console
    if _console is None:
        _console = Console(theme=CONDUCTOR_THEME, highlight=False)
    return _console
