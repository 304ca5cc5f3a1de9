"""
Data models for the tools system.

This module defines Pydantic models for tool results, invocations, previews
and file diffs.
"""

import difflib
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field


class ToolKind(str, Enum):
    """
    Categories of tools based on their operation type.

    Attributes
    ----------
    READ : str
        Read-only operations; never gated.
    WRITE : str
        Filesystem mutations; gated.
    SHELL : str
        Arbitrary command execution; gated.
    """

    READ = "read"
    WRITE = "write"
    SHELL = "shell"


class FileDiff(BaseModel):
    """
    Represents a diff between two file versions.

    Parameters
    ----------
    path : Path
        Path to the file being diffed.
    old_content : str
        Original file content.
    new_content : str
        New file content.
    is_new_file : bool, default=False
        Whether this is a new file (old_content is empty).
    is_deletion : bool, default=False
        Whether this is a file deletion (new_content is empty).

    Examples
    --------
    >>> diff = FileDiff(
    ...     path=Path("test.py"),
    ...     old_content="print('old')",
    ...     new_content="print('new')"
    ... )
    >>> diff_str = diff.to_diff()
    """

    path: Path = Field(description="File path")
    old_content: str = Field(description="Original content")
    new_content: str = Field(description="New content")
    is_new_file: bool = Field(default=False, description="Is new file")
    is_deletion: bool = Field(default=False, description="Is deletion")

    def to_diff(self) -> str:
        """
        Generate a unified diff string.

        Returns
        -------
        str
            Unified diff format string.
        """
        old_lines: list[str] = self.old_content.splitlines(keepends=True)
        new_lines: list[str] = self.new_content.splitlines(keepends=True)

        if old_lines and not old_lines[-1].endswith("\n"):
            old_lines[-1] += "\n"
        if new_lines and not new_lines[-1].endswith("\n"):
            new_lines[-1] += "\n"

        old_name: str = "/dev/null" if self.is_new_file else str(self.path)
        new_name: str = "/dev/null" if self.is_deletion else str(self.path)

        return "".join(
            difflib.unified_diff(
                old_lines,
                new_lines,
                fromfile=old_name,
                tofile=new_name,
            ),
        )


class ToolResult(BaseModel):
    """
    Result of a tool invocation.

    Parameters
    ----------
    success : bool
        Whether the tool execution was successful.
    content : str
        Content reported back to the model.
    short_result : str | None, optional
        One-line summary for display.
    error : str | None, optional
        Error message if execution failed.
    diff : FileDiff | None, optional
        File diff if this was a file modification.
    metadata : dict[str, Any], default={}
        Additional metadata about the execution.
    exit_code : int | None, optional
        Exit code for shell commands.

    Examples
    --------
    >>> result = ToolResult.success_result("File read successfully")
    >>> result = ToolResult.error_result("File not found")
    """

    success: bool = Field(description="Whether execution succeeded")
    content: str = Field(default="", description="Tool output")
    short_result: str | None = Field(default=None, description="Short summary")
    error: str | None = Field(default=None, description="Error message")
    diff: FileDiff | None = Field(default=None, description="File diff")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")
    exit_code: int | None = Field(default=None, description="Exit code")

    @classmethod
    def error_result(cls, error: str, content: str = "", **kwargs: Any) -> "ToolResult":
        """
        Create an error result.

        Parameters
        ----------
        error : str
            Error message.
        content : str, default=""
            Optional output text.
        **kwargs : Any
            Additional fields for the result.

        Returns
        -------
        ToolResult
            Error result instance.
        """
        return cls(success=False, content=content, error=error, **kwargs)

    @classmethod
    def success_result(cls, content: str, **kwargs: Any) -> "ToolResult":
        return cls(success=True, content=content, error=None, **kwargs)

    def to_model_output(self) -> str:
        """
        Text the model sees for this result.

        Examples
        --------
        >>> ToolResult.error_result("denied").to_model_output()
        'denied'
        """
        if self.success:
            return self.content
        if self.content:
            return f"Error: {self.error}\n\nOutput:\n{self.content}"
        return self.error or "Tool failed"


class ToolInvocation(BaseModel):
    """
    Represents an invocation of a tool.

    Parameters
    ----------
    params : dict[str, Any]
        Validated parameters for the tool.
    cwd : Path
        Current working directory for the invocation.
    """

    params: dict[str, Any] = Field(description="Tool parameters")
    cwd: Path = Field(description="Current working directory")


class ToolPreview(BaseModel):
    """
    What a restricted tool is about to do, computed before gating.

    Parameters
    ----------
    description : str
        Human-readable description of the action.
    diff : FileDiff | None, optional
        File diff if this is a file modification.
    command : str | None, optional
        Shell command if this is a command execution.
    error : str | None, optional
        Set when the call cannot succeed; the invoker fails it without
        asking for permission.
    """

    description: str = Field(default="", description="Action description")
    diff: FileDiff | None = Field(default=None, description="File diff")
    command: str | None = Field(default=None, description="Shell command")
    error: str | None = Field(default=None, description="Preview failure")
