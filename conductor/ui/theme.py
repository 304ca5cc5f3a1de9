"""
Color theme for the terminal front-end, tuned for dark terminals.
"""

from rich.theme import Theme

CONDUCTOR_THEME = Theme(
    {
        # General styles
        "info": "cyan",
        "warning": "yellow",
        "error": "bright_red bold",
        "success": "green",
        "dim": "dim",
        "muted": "grey50",
        "border": "grey35",
        "highlight": "bold cyan",
        # Role styles
        "user": "bright_blue bold",
        "assistant": "bright_white",
        # Block styles
        "tool": "bright_magenta bold",
        "tool.read": "cyan",
        "tool.write": "yellow",
        "tool.shell": "magenta",
        "memory": "green",
        "compress": "grey50 italic",
        "code": "white",
    },
)
