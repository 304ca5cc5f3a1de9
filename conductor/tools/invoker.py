"""
Tool invocation contract.

Every call follows the same sequence: validate arguments, compute a
preview, pass the permission gate (restricted tools only), perform the
effect, report. Validation and preview failures never reach the gate, and a
denial returns before any effect starts.
"""

import logging
from pathlib import Path
from typing import Any

from conductor.agent.abort import AbortSignal
from conductor.exceptions import AbortedError
from conductor.safety.models import PermissionRequest
from conductor.safety.permissions import PermissionGate
from conductor.tools.base import Tool
from conductor.tools.models import ToolInvocation, ToolPreview, ToolResult
from conductor.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolInvoker:
    """
    Runs tool calls through validation, preview, permission and execution.

    Parameters
    ----------
    registry : ToolRegistry
        Closed tool table.
    gate : PermissionGate
        Permission gate for restricted tools.
    cwd : Path
        Project root passed to every invocation.

    Examples
    --------
    >>> invoker = ToolInvoker(registry, gate, Path.cwd())
    >>> result = await invoker.invoke(
    ...     "Write",
    ...     {"file_path": "notes.txt", "content": "hi"},
    ...     abort_signal=signals.tools,
    ... )
    >>> result.success
    True
    """

    def __init__(self, registry: ToolRegistry, gate: PermissionGate, cwd: Path) -> None:
        self.registry: ToolRegistry = registry
        self.gate: PermissionGate = gate
        self.cwd: Path = cwd

    def _validate(
        self,
        name: str,
        params: dict[str, Any],
    ) -> tuple[Tool | None, ToolResult | None]:
        tool = self.registry.get(name)
        if tool is None:
            return None, ToolResult.error_result(
                f"Unknown tool: {name}",
                metadata={"tool_name": name},
            )

        validation_errors: list[str] = tool.validate_params(params)
        if validation_errors:
            return tool, ToolResult.error_result(
                f"Invalid parameters: {'; '.join(validation_errors)}",
                metadata={"tool_name": name, "validation_errors": validation_errors},
            )
        return tool, None

    def check(self, name: str, params: dict[str, Any]) -> ToolResult | None:
        """
        Validate a call without running anything.

        Returns
        -------
        ToolResult | None
            A failed result for unknown tools or invalid arguments, else
            ``None``. The agent loop calls this before PreToolUse hooks so
            invalid calls never reach hooks or the permission gate.
        """
        return self._validate(name, params)[1]

    async def invoke(
        self,
        name: str,
        params: dict[str, Any],
        abort_signal: AbortSignal | None = None,
    ) -> ToolResult:
        """
        Invoke a tool.

        Parameters
        ----------
        name : str
            Tool name requested by the model.
        params : dict[str, Any]
            Parsed arguments.
        abort_signal : AbortSignal | None, optional
            Tool-execution signal.

        Returns
        -------
        ToolResult
            Failed results for unknown tools, invalid arguments, failed
            previews, denials and unexpected errors.

        Raises
        ------
        AbortedError
            If the signal fires while the effect is running.
        """
        tool, rejected = self._validate(name, params)
        if tool is None or rejected is not None:
            return rejected or ToolResult.error_result(f"Unknown tool: {name}")

        invocation = ToolInvocation(params=params, cwd=self.cwd)

        if tool.restricted:
            try:
                preview: ToolPreview = await tool.preview(invocation)
            except Exception as e:
                logger.exception(f"Preview for {name} raised unexpected error")
                return ToolResult.error_result(f"Internal error: {e}")

            if preview.error is not None:
                return ToolResult.error_result(preview.error, metadata={"tool_name": name})

            decision = await self.gate.check_permission(
                name,
                request=PermissionRequest(
                    tool_name=name,
                    tool_input=params,
                    description=preview.description,
                    diff=preview.diff.to_diff() if preview.diff else None,
                    command=preview.command,
                ),
                abort_signal=abort_signal,
            )
            if not decision.allowed:
                logger.info(f"{name} denied: {decision.message}")
                return ToolResult.error_result(
                    decision.message or f"Permission to use {name} was denied",
                    metadata={"tool_name": name, "denied": True},
                )

        if abort_signal is not None and abort_signal.aborted:
            raise AbortedError(f"{name} aborted before execution")

        try:
            if abort_signal is not None:
                return await abort_signal.race(tool.execute(invocation))
            return await tool.execute(invocation)
        except AbortedError:
            raise
        except Exception as e:
            logger.exception(f"Tool {name} raised unexpected error")
            return ToolResult.error_result(
                f"Internal error: {e}",
                metadata={"tool_name": name},
            )
