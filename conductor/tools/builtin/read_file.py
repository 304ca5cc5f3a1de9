"""
Read tool for text file contents.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import DEFAULT_ENCODING, MAX_TOOL_OUTPUT_BYTES
from conductor.tools.base import Tool
from conductor.tools.models import ToolInvocation, ToolKind, ToolResult
from conductor.utils.paths import display_path, is_binary_file, resolve_path

logger = logging.getLogger(__name__)


class ReadParams(BaseModel):
    """
    Parameters for the Read tool.

    Parameters
    ----------
    file_path : str
        Path to the file to read.
    offset : int, default=1
        Line number to start reading from (1-based).
    limit : int | None, optional
        Maximum number of lines to read.
    """

    file_path: str = Field(
        ...,
        description="Path to the file to read (relative to the project root or absolute)",
    )
    offset: int = Field(1, ge=1, description="Line number to start reading from (1-based)")
    limit: int | None = Field(None, ge=1, description="Maximum number of lines to read")


class ReadTool(Tool):
    """
    Reads a text file with line numbers.

    Read-only, so it never reaches the permission gate.
    """

    name = "Read"
    description = (
        "Read a text file. Output lines are prefixed with their line numbers. "
        "Use offset and limit to read part of a large file."
    )
    kind = ToolKind.READ
    schema = ReadParams

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        params = ReadParams(**invocation.params)
        path: Path = resolve_path(invocation.cwd, params.file_path)

        if not path.exists():
            return ToolResult.error_result(f"File not found: {params.file_path}")
        if not path.is_file():
            return ToolResult.error_result(f"Not a file: {params.file_path}")
        if is_binary_file(path):
            return ToolResult.error_result(f"Cannot read binary file: {params.file_path}")

        try:
            lines: list[str] = path.read_text(
                encoding=DEFAULT_ENCODING,
                errors="replace",
            ).splitlines()
        except OSError as e:
            logger.exception(f"Failed to read file {path}: {e}")
            return ToolResult.error_result(f"Failed to read file: {e}")

        total: int = len(lines)
        start: int = params.offset - 1
        end: int = total if params.limit is None else min(total, start + params.limit)

        if total and start >= total:
            return ToolResult.error_result(
                f"Offset {params.offset} is past the end of the file ({total} lines)",
            )

        output: str = "\n".join(
            f"{number:6}\t{line}" for number, line in enumerate(lines[start:end], start + 1)
        )
        truncated: bool = len(output) > MAX_TOOL_OUTPUT_BYTES
        if truncated:
            output = output[:MAX_TOOL_OUTPUT_BYTES] + "\n... [output truncated]"

        shown: str = display_path(path, invocation.cwd)
        return ToolResult.success_result(
            output,
            short_result=f"Read {end - start} lines from {shown}",
            metadata={"path": str(path), "total_lines": total, "truncated": truncated},
        )
