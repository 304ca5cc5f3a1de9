"""
Write tool for creating and overwriting files.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import DEFAULT_ENCODING
from conductor.tools.base import Tool
from conductor.tools.models import FileDiff, ToolInvocation, ToolKind, ToolPreview, ToolResult
from conductor.utils.paths import display_path, ensure_parent_directory, resolve_path

logger = logging.getLogger(__name__)


class WriteParams(BaseModel):
    """
    Parameters for the Write tool.

    Parameters
    ----------
    file_path : str
        Path to the file to write (relative to the project root or absolute).
    content : str
        Content to write to the file.
    """

    file_path: str = Field(
        ...,
        description="Path to the file to write (relative to the project root or absolute)",
    )
    content: str = Field(..., description="Content to write to the file")


class WriteTool(Tool):
    """
    Creates a file or replaces its entire content.

    Parent directories are created as needed.
    """

    name = "Write"
    description = (
        "Write content to a file. Creates the file if it doesn't exist, "
        "or overwrites it if it does. Parent directories are created automatically. "
        "For partial modifications, use Edit instead."
    )
    kind = ToolKind.WRITE
    schema = WriteParams

    def _read_existing(self, path: Path) -> str:
        if not path.exists():
            return ""
        return path.read_text(encoding=DEFAULT_ENCODING)

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        params = WriteParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)

        if path.is_dir():
            return ToolPreview(error=f"Path is a directory: {params.file_path}")

        try:
            old_content: str = self._read_existing(path)
        except (OSError, UnicodeDecodeError) as e:
            return ToolPreview(error=f"Failed to read existing file: {e}")

        is_new_file: bool = not path.exists()
        action: str = "Create" if is_new_file else "Overwrite"
        return ToolPreview(
            description=f"{action} {display_path(path, invocation.cwd)}",
            diff=FileDiff(
                path=path,
                old_content=old_content,
                new_content=params.content,
                is_new_file=is_new_file,
            ),
        )

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        params = WriteParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)

        is_new_file: bool = not path.exists()
        try:
            old_content: str = self._read_existing(path)
            ensure_parent_directory(path)
            path.write_text(params.content, encoding=DEFAULT_ENCODING)
        except (OSError, UnicodeDecodeError) as e:
            logger.exception(f"Failed to write file {path}: {e}")
            return ToolResult.error_result(f"Failed to write file: {e}")

        action: str = "Created" if is_new_file else "Updated"
        line_count: int = len(params.content.splitlines())
        shown: str = display_path(path, invocation.cwd)

        return ToolResult.success_result(
            f"{action} {shown} ({line_count} lines)",
            short_result=f"{action} {shown}",
            diff=FileDiff(
                path=path,
                old_content=old_content,
                new_content=params.content,
                is_new_file=is_new_file,
            ),
            metadata={
                "path": str(path),
                "is_new_file": is_new_file,
                "lines": line_count,
            },
        )
