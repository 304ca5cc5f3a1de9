"""
MultiEdit tool: several replacements in one file, applied atomically.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import DEFAULT_ENCODING
from conductor.tools.base import Tool
from conductor.tools.builtin.edit_file import replace_text
from conductor.tools.models import FileDiff, ToolInvocation, ToolKind, ToolPreview, ToolResult
from conductor.utils.paths import display_path, resolve_path

logger = logging.getLogger(__name__)


class EditOperation(BaseModel):
    """One replacement within a MultiEdit call."""

    old_string: str = Field(..., min_length=1, description="Exact text to replace")
    new_string: str = Field(..., description="Replacement text")
    replace_all: bool = Field(False, description="Replace all occurrences")


class MultiEditParams(BaseModel):
    """
    Parameters for the MultiEdit tool.

    Parameters
    ----------
    file_path : str
        Path to an existing file.
    edits : list[EditOperation]
        Replacements applied in order, each to the result of the previous.
    """

    file_path: str = Field(..., description="Path to the file to edit")
    edits: list[EditOperation] = Field(
        ...,
        min_length=1,
        description="Edits applied in sequence",
    )


class MultiEditTool(Tool):
    """
    Applies a sequence of edits to one file. Either all succeed or the file
    is left untouched.
    """

    name = "MultiEdit"
    description = (
        "Make several exact text replacements in one file. Edits are applied "
        "in order; if any edit fails, none are applied."
    )
    kind = ToolKind.WRITE
    schema = MultiEditParams

    def _plan(self, invocation: ToolInvocation) -> FileDiff | str:
        params = MultiEditParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)
        shown: str = display_path(path, invocation.cwd)

        if not path.is_file():
            return f"File does not exist: {shown}"

        try:
            original: str = path.read_text(encoding=DEFAULT_ENCODING)
        except (OSError, UnicodeDecodeError) as e:
            return f"Failed to read file: {e}"

        content: str = original
        for index, edit in enumerate(params.edits, 1):
            updated, error = replace_text(
                content,
                edit.old_string,
                edit.new_string,
                edit.replace_all,
                shown,
            )
            if error is not None:
                return f"Edit {index}: {error}"
            content = updated

        return FileDiff(path=path, old_content=original, new_content=content)

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        plan = self._plan(invocation)
        if isinstance(plan, str):
            return ToolPreview(error=plan)
        count: int = len(invocation.params.get("edits", []))
        return ToolPreview(
            description=f"Apply {count} edit(s) to {display_path(plan.path, invocation.cwd)}",
            diff=plan,
        )

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        plan = self._plan(invocation)
        if isinstance(plan, str):
            return ToolResult.error_result(plan)

        try:
            plan.path.write_text(plan.new_content, encoding=DEFAULT_ENCODING)
        except OSError as e:
            logger.exception(f"Failed to write file {plan.path}: {e}")
            return ToolResult.error_result(f"Failed to write file: {e}")

        shown: str = display_path(plan.path, invocation.cwd)
        count: int = len(invocation.params["edits"])
        return ToolResult.success_result(
            f"Applied {count} edit(s) to {shown}",
            short_result=f"Edited {shown}",
            diff=plan,
            metadata={"path": str(plan.path), "edits": count},
        )
