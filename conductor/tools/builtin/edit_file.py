"""
Edit tool for exact text replacements in a file.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import DEFAULT_ENCODING
from conductor.tools.base import Tool
from conductor.tools.models import FileDiff, ToolInvocation, ToolKind, ToolPreview, ToolResult
from conductor.utils.paths import display_path, ensure_parent_directory, resolve_path

logger = logging.getLogger(__name__)


class EditParams(BaseModel):
    """
    Parameters for the Edit tool.

    Parameters
    ----------
    file_path : str
        Path to the file to edit.
    old_string : str
        Exact text to replace. Empty creates a new file.
    new_string : str
        Replacement text.
    replace_all : bool, default=False
        Replace every occurrence instead of requiring a unique match.
    """

    file_path: str = Field(
        ...,
        description="Path to the file to edit (relative to the project root or absolute)",
    )
    old_string: str = Field(
        "",
        description="The exact text to replace, including whitespace. Empty to create a new file.",
    )
    new_string: str = Field(..., description="The text to replace old_string with")
    replace_all: bool = Field(False, description="Replace all occurrences of old_string")


def replace_text(
    content: str,
    old_string: str,
    new_string: str,
    replace_all: bool,
    shown_path: str,
) -> tuple[str | None, str | None]:
    """
    Apply one replacement to ``content``.

    Returns
    -------
    tuple[str | None, str | None]
        ``(new_content, None)`` on success, ``(None, error)`` otherwise.

    Examples
    --------
    >>> replace_text("a b a", "a", "c", True, "f.txt")
    ('c b c', None)
    >>> replace_text("a b a", "a", "c", False, "f.txt")[1]
    'old_string found 2 times in f.txt; add context or set replace_all'
    """
    if not old_string:
        return None, f"old_string is empty but {shown_path} exists; use Write to overwrite"

    occurrences: int = content.count(old_string)
    if occurrences == 0:
        return None, _no_match_message(old_string, content, shown_path)
    if occurrences > 1 and not replace_all:
        return None, (
            f"old_string found {occurrences} times in {shown_path}; "
            f"add context or set replace_all"
        )
    if old_string == new_string:
        return None, "No change made - old_string equals new_string"

    if replace_all:
        return content.replace(old_string, new_string), None
    return content.replace(old_string, new_string, 1), None


def _no_match_message(old_string: str, content: str, shown_path: str) -> str:
    message: str = f"old_string not found in {shown_path}."

    words: list[str] = old_string.split()
    if not words:
        return message

    similar: list[str] = [
        f"  Line {number}: {line.strip()[:80]}"
        for number, line in enumerate(content.splitlines(), 1)
        if words[0] in line
    ][:3]
    if similar:
        message += "\n\nPossible similar lines:\n" + "\n".join(similar)
    return message + "\n\nMake sure old_string matches exactly, including indentation."


class EditTool(Tool):
    """
    Replaces exact text in a file, or creates the file when old_string is empty.
    """

    name = "Edit"
    description = (
        "Edit a file by replacing text. old_string must match exactly "
        "(including whitespace and indentation) and must be unique in the file "
        "unless replace_all is true."
    )
    kind = ToolKind.WRITE
    schema = EditParams

    def _plan(self, invocation: ToolInvocation) -> FileDiff | str:
        """Compute the resulting diff, or an error message."""
        params = EditParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)
        shown: str = display_path(path, invocation.cwd)

        if not path.exists():
            if params.old_string:
                return f"File does not exist: {shown}. Use an empty old_string to create it."
            return FileDiff(path=path, old_content="", new_content=params.new_string, is_new_file=True)

        if path.is_dir():
            return f"Path is a directory: {shown}"

        try:
            old_content: str = path.read_text(encoding=DEFAULT_ENCODING)
        except (OSError, UnicodeDecodeError) as e:
            return f"Failed to read file: {e}"

        new_content, error = replace_text(
            old_content,
            params.old_string,
            params.new_string,
            params.replace_all,
            shown,
        )
        if error is not None:
            return error
        return FileDiff(path=path, old_content=old_content, new_content=new_content)

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        plan = self._plan(invocation)
        if isinstance(plan, str):
            return ToolPreview(error=plan)
        action: str = "Create" if plan.is_new_file else "Edit"
        return ToolPreview(
            description=f"{action} {display_path(plan.path, invocation.cwd)}",
            diff=plan,
        )

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        plan = self._plan(invocation)
        if isinstance(plan, str):
            return ToolResult.error_result(plan)

        try:
            ensure_parent_directory(plan.path)
            plan.path.write_text(plan.new_content, encoding=DEFAULT_ENCODING)
        except OSError as e:
            logger.exception(f"Failed to write file {plan.path}: {e}")
            return ToolResult.error_result(f"Failed to write file: {e}")

        shown: str = display_path(plan.path, invocation.cwd)
        line_diff: int = len(plan.new_content.splitlines()) - len(plan.old_content.splitlines())
        action: str = "Created" if plan.is_new_file else "Edited"

        return ToolResult.success_result(
            f"{action} {shown} ({line_diff:+d} lines)",
            short_result=f"{action} {shown}",
            diff=plan,
            metadata={"path": str(plan.path), "line_diff": line_diff},
        )
