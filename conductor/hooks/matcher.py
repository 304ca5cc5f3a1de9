"""
Tool-name matching for hook groups.

A matcher is an exact name, a glob such as ``Edit*``, or ``|``-separated
alternatives of either. Matching ignores case.
"""

import fnmatch

GLOB_CHARS: frozenset[str] = frozenset("*?[")


def _matches_single(pattern: str, tool_name: str) -> bool:
    if pattern.lower() == tool_name.lower():
        return True
    if not GLOB_CHARS.intersection(pattern):
        return False
    return fnmatch.fnmatchcase(tool_name.lower(), pattern.lower())


def matches(pattern: str | None, tool_name: str | None) -> bool:
    """
    Test a hook matcher against a tool name.

    Parameters
    ----------
    pattern : str | None
        Matcher from a hook group. ``None`` matches everything.
    tool_name : str | None
        Tool name; ``None`` only matches an absent pattern.

    Returns
    -------
    bool
        Whether the group applies.

    Examples
    --------
    >>> matches("Write|Edit", "edit")
    True
    >>> matches("Multi*", "MultiEdit")
    True
    >>> matches("Write", "Read")
    False
    """
    if pattern is None:
        return True
    if not tool_name:
        return False

    alternatives: list[str] = [alt.strip() for alt in pattern.split("|")]
    return any(alt and _matches_single(alt, tool_name) for alt in alternatives)
