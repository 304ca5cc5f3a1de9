"""
Allow rules for restricted tools.

A rule is either a bare tool name (``Write``) or a tool name with a
specifier in parentheses. For Bash the specifier is a command, or a command
prefix when it ends in ``:*`` (``Bash(git status:*)``). For file tools the
specifier is a glob on the target path (``Edit(src/*)``); ``*`` stays
within one path segment and ``**`` spans any number of them.

A compound shell command is allowed only when every command in it is.
Commands that substitute or escape text are never allowed by a prefix rule.
"""

import fnmatch
import logging
import posixpath
import re
import shlex
from pathlib import PurePosixPath
from typing import Any

from conductor.safety.models import PermissionRequest

logger = logging.getLogger(__name__)

_RULE_PATTERN = re.compile(r"^(?P<tool>[A-Za-z]+)(?:\((?P<specifier>.*)\))?$")
_PATH_KEYS: tuple[str, ...] = ("file_path", "path")

_SHELL_PUNCTUATION: str = "();<>|&\n"
_PUNCTUATION_SET: frozenset[str] = frozenset(_SHELL_PUNCTUATION)
_SEPARATOR_CHARS: frozenset[str] = frozenset(";&|\n")
# Text bash rewrites before running it; shlex cannot see through these.
_UNSAFE_FRAGMENTS: tuple[str, ...] = ("$(", "`", "\\")


def _target_path(tool_input: dict[str, Any]) -> str | None:
    for key in _PATH_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str):
            return value
    return None


def split_command(command: str) -> list[str] | None:
    """
    Split a shell command line into its simple commands.

    Commands are separated by ``;``, ``&&``, ``||``, ``|``, ``&`` and
    newlines outside quotes. Each command comes back with its words joined
    by single spaces.

    Returns
    -------
    list[str] | None
        ``None`` when the line cannot be judged safely: unbalanced quotes,
        command or process substitution, subshells, or backslash escapes.

    Examples
    --------
    >>> split_command("git status && git diff | head")
    ['git status', 'git diff', 'head']
    >>> split_command("echo 'a; b'")
    ["echo 'a; b'"]
    >>> split_command("git log $(touch x)") is None
    True
    """
    if any(fragment in command for fragment in _UNSAFE_FRAGMENTS):
        return None

    lexer = shlex.shlex(command, posix=False, punctuation_chars=_SHELL_PUNCTUATION)
    lexer.whitespace = " \t\r"
    lexer.whitespace_split = True
    lexer.commenters = ""
    try:
        tokens: list[str] = list(lexer)
    except ValueError as e:
        logger.debug(f"Cannot split shell command {command!r}: {e}")
        return None

    segments: list[str] = []
    words: list[str] = []
    for token in tokens:
        if set(token) <= _SEPARATOR_CHARS:
            if words:
                segments.append(" ".join(words))
            words = []
            continue
        if set(token) <= _PUNCTUATION_SET and ("(" in token or ")" in token):
            # subshell or process substitution
            return None
        words.append(token)
    if words:
        segments.append(" ".join(words))
    return segments


def _command_matches(specifier: str, command: str) -> bool:
    if command == specifier:
        return True

    segments: list[str] | None = split_command(command)
    if not segments:
        return False

    if specifier.endswith(":*"):
        prefix: str = " ".join(specifier[:-2].split())
        return all(s == prefix or s.startswith(f"{prefix} ") for s in segments)
    expected: str = " ".join(specifier.split())
    return all(s == expected for s in segments)


def _match_parts(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        return any(_match_parts(rest, parts[i:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_parts(rest, parts[1:])


def path_matches(pattern: str, path: str) -> bool:
    """
    Match a path against a glob one segment at a time.

    Matching is case-sensitive and ``..`` is resolved before matching.

    Examples
    --------
    >>> path_matches("src/*", "src/app.py")
    True
    >>> path_matches("src/*", "src/pkg/app.py")
    False
    >>> path_matches("src/**", "src/pkg/app.py")
    True
    """
    normalized: str = posixpath.normpath(path)
    return _match_parts(PurePosixPath(pattern).parts, PurePosixPath(normalized).parts)


def rule_matches(rule: str, request: PermissionRequest) -> bool:
    """
    Test whether an allow rule covers a request.

    Examples
    --------
    >>> req = PermissionRequest(tool_name="Bash", command="git status -s")
    >>> rule_matches("Bash(git status:*)", req)
    True
    >>> rule_matches("Bash(git push:*)", req)
    False
    """
    parsed = _RULE_PATTERN.match(rule.strip())
    if parsed is None or parsed.group("tool") != request.tool_name:
        return False

    specifier: str | None = parsed.group("specifier")
    if specifier is None or specifier in ("", "*"):
        return True

    if request.tool_name == "Bash":
        return _command_matches(specifier.strip(), (request.command or "").strip())

    path: str | None = _target_path(request.tool_input)
    return path is not None and path_matches(specifier, path)


def rule_for(request: PermissionRequest) -> str:
    """Rule that allows exactly this kind of request again."""
    if request.tool_name == "Bash" and request.command:
        return f"Bash({request.command.strip()})"
    return request.tool_name
