"""
Delete tool for files and directories.
"""

import logging
import shutil
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import DEFAULT_ENCODING
from conductor.tools.base import Tool
from conductor.tools.models import FileDiff, ToolInvocation, ToolKind, ToolPreview, ToolResult
from conductor.utils.paths import display_path, is_binary_file, resolve_path

logger = logging.getLogger(__name__)


class DeleteParams(BaseModel):
    """
    Parameters for the Delete tool.

    Parameters
    ----------
    file_path : str
        File or directory to delete.
    recursive : bool, default=False
        Required to delete a non-empty directory.
    """

    file_path: str = Field(..., description="Path of the file or directory to delete")
    recursive: bool = Field(False, description="Delete non-empty directories recursively")


class DeleteTool(Tool):
    """Deletes a file, or a directory when ``recursive`` allows it."""

    name = "Delete"
    description = (
        "Delete a file or directory. Non-empty directories require recursive=true."
    )
    kind = ToolKind.WRITE
    schema = DeleteParams

    def _check(self, path: Path, params: DeleteParams, shown: str) -> str | None:
        if not path.exists():
            return f"Path does not exist: {shown}"
        if path.is_dir() and not params.recursive and any(path.iterdir()):
            return f"Directory is not empty: {shown}. Use recursive=true to delete it."
        if path.resolve() == Path(self.config.cwd).resolve():
            return "Refusing to delete the project root"
        return None

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        params = DeleteParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)
        shown: str = display_path(path, invocation.cwd)

        error: str | None = self._check(path, params, shown)
        if error is not None:
            return ToolPreview(error=error)

        diff: FileDiff | None = None
        if path.is_file() and not is_binary_file(path):
            try:
                diff = FileDiff(
                    path=path,
                    old_content=path.read_text(encoding=DEFAULT_ENCODING),
                    new_content="",
                    is_deletion=True,
                )
            except (OSError, UnicodeDecodeError):
                logger.debug(f"No diff preview for {path}")

        suffix: str = " (recursive)" if path.is_dir() and params.recursive else ""
        return ToolPreview(description=f"Delete {shown}{suffix}", diff=diff)

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        params = DeleteParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)
        shown: str = display_path(path, invocation.cwd)

        error: str | None = self._check(path, params, shown)
        if error is not None:
            return ToolResult.error_result(error)

        try:
            if path.is_dir():
                if params.recursive:
                    shutil.rmtree(path)
                else:
                    path.rmdir()
            else:
                path.unlink()
        except OSError as e:
            logger.exception(f"Failed to delete {path}: {e}")
            return ToolResult.error_result(f"Failed to delete: {e}")

        return ToolResult.success_result(
            f"Deleted {shown}",
            short_result=f"Deleted {shown}",
            metadata={"path": str(path)},
        )
