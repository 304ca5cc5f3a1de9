"""
Bash tool for running shell commands in the project root.
"""

import asyncio
import os
import signal
import sys
from pathlib import Path

from pydantic import BaseModel, Field

from conductor.constants import MAX_TOOL_OUTPUT_BYTES
from conductor.tools.base import Tool
from conductor.tools.models import ToolInvocation, ToolKind, ToolPreview, ToolResult

BLOCKED_COMMANDS: set[str] = {
    "rm -rf /",
    "rm -rf ~",
    "rm -rf /*",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    "mkfs",
    "fdisk",
    "parted",
    ":(){ :|:& };:",
    "shutdown",
    "reboot",
    "halt",
    "poweroff",
    "init 0",
    "init 6",
}


class BashParams(BaseModel):
    """
    Parameters for the Bash tool.

    Parameters
    ----------
    command : str
        Command line to run with ``/bin/bash -c``.
    timeout : int, default=120
        Seconds before the command is killed.
    description : str | None, optional
        Short description shown in confirmations.
    """

    command: str = Field(..., min_length=1, description="The shell command to execute")
    timeout: int = Field(120, ge=1, le=600, description="Timeout in seconds")
    description: str | None = Field(None, description="What the command does, in a few words")


def _is_blocked(command: str) -> bool:
    normalized: str = command.lower().strip()
    return any(blocked in normalized for blocked in BLOCKED_COMMANDS)


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            if sys.platform != "win32":
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class BashTool(Tool):
    """
    Runs a shell command and reports its combined output and exit code.

    The command runs in its own process group, which is killed on timeout
    or when the call is cancelled.
    """

    name = "Bash"
    description = (
        "Execute a shell command in the project root. Returns stdout, stderr "
        "and the exit code. Use for builds, tests, git and other CLI tasks."
    )
    kind = ToolKind.SHELL
    schema = BashParams

    async def preview(self, invocation: ToolInvocation) -> ToolPreview:
        params = BashParams(**invocation.params)
        if _is_blocked(params.command):
            return ToolPreview(error=f"Command blocked for safety: {params.command}")
        return ToolPreview(
            description=params.description or f"Run: {params.command}",
            command=params.command,
        )

    async def execute(self, invocation: ToolInvocation) -> ToolResult:
        params = BashParams(**invocation.params)
        if _is_blocked(params.command):
            return ToolResult.error_result(f"Command blocked for safety: {params.command}")

        cwd: Path = invocation.cwd
        if sys.platform == "win32":
            shell_cmd: list[str] = ["cmd.exe", "/c", params.command]
        else:
            shell_cmd = ["/bin/bash", "-c", params.command]

        process = await asyncio.create_subprocess_exec(
            *shell_cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=os.environ.copy(),
            start_new_session=True,
        )

        try:
            stdout_data, stderr_data = await asyncio.wait_for(
                process.communicate(),
                timeout=params.timeout,
            )
        except asyncio.TimeoutError:
            await _kill(process)
            return ToolResult.error_result(f"Command timed out after {params.timeout}s")
        except asyncio.CancelledError:
            await _kill(process)
            raise

        stdout: str = stdout_data.decode("utf-8", errors="replace")
        stderr: str = stderr_data.decode("utf-8", errors="replace")
        exit_code: int | None = process.returncode

        output: str = stdout.rstrip()
        if stderr.strip():
            output += "\n--- stderr ---\n" + stderr.rstrip()
        if exit_code != 0:
            output += f"\nExit code: {exit_code}"
        if len(output) > MAX_TOOL_OUTPUT_BYTES:
            output = output[:MAX_TOOL_OUTPUT_BYTES] + "\n... [output truncated]"

        return ToolResult(
            success=exit_code == 0,
            content=output.strip(),
            short_result=f"Exit code {exit_code}",
            error=(stderr.strip() or f"Exit code {exit_code}") if exit_code != 0 else None,
            exit_code=exit_code,
        )
