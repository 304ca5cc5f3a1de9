"""
Hook process execution.

``HookRunner.run`` spawns one isolated shell process per hook command,
feeds it the JSON payload on standard input and collects its exit code and
output. It never raises: spawn failures, timeouts and aborts all surface as
a ``HookExecutionResult``.
"""

import asyncio
import logging
import os
import signal
import sys
import time
from pathlib import Path

from conductor.agent.abort import AbortSignal
from conductor.constants import DEFAULT_HOOK_TIMEOUT_MS
from conductor.hooks.environment import build_hook_environment
from conductor.hooks.models import HookExecutionResult, HookJsonInput

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    """Kill the process and everything it spawned, then reap it."""
    if process.returncode is None:
        try:
            if sys.platform != "win32":
                os.killpg(os.getpgid(process.pid), signal.SIGKILL)
            else:
                process.kill()
        except ProcessLookupError:
            pass
    await process.wait()


class HookRunner:
    """
    Runs hook commands in child processes.

    Examples
    --------
    >>> runner = HookRunner()
    >>> result = await runner.run(
    ...     "./check.sh",
    ...     payload,
    ...     cwd=Path("/work"),
    ...     env_overrides={"STRICT": "1"},
    ... )
    >>> result.exit_code
    0
    """

    async def run(
        self,
        command: str,
        json_input: HookJsonInput,
        cwd: Path,
        env_overrides: dict[str, str] | None = None,
        timeout_ms: int = DEFAULT_HOOK_TIMEOUT_MS,
        abort_signal: AbortSignal | None = None,
    ) -> HookExecutionResult:
        """
        Execute one hook command.

        Parameters
        ----------
        command : str
            Shell command line.
        json_input : HookJsonInput
            Payload written to standard input, which is then closed.
        cwd : Path
            Working directory and project root.
        env_overrides : dict[str, str] | None, optional
            Merged configuration environment variables.
        timeout_ms : int, default=10000
            Milliseconds before the process group is killed.
        abort_signal : AbortSignal | None, optional
            Tool-execution signal; firing it kills the process group.

        Returns
        -------
        HookExecutionResult
            Result with ``timed_out`` or ``aborted`` set when the process
            was killed, and ``exit_code=None`` when it never ran.
        """
        started: float = time.monotonic()
        env: dict[str, str] = build_hook_environment(cwd, env_overrides)
        payload: bytes = json_input.to_json().encode("utf-8")

        if abort_signal is not None and abort_signal.aborted:
            return HookExecutionResult(command=command, aborted=True)

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                start_new_session=True,
            )
        except Exception as e:
            logger.warning(f"Failed to spawn hook '{command}': {e}")
            return HookExecutionResult(
                command=command,
                stderr=str(e),
                duration_ms=_elapsed_ms(started),
            )

        logger.debug(f"Hook '{command}' started (pid {process.pid})")

        # communicate() ignores BrokenPipeError when the hook never reads stdin
        communicate: asyncio.Task[tuple[bytes, bytes]] = asyncio.ensure_future(
            process.communicate(input=payload),
        )
        waiters: set[asyncio.Future] = {communicate}
        abort_waiter: asyncio.Future | None = None
        if abort_signal is not None:
            abort_waiter = asyncio.ensure_future(abort_signal.wait())
            waiters.add(abort_waiter)

        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=timeout_ms / 1000,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            communicate.cancel()
            await _kill_process_group(process)
            raise
        finally:
            if abort_waiter is not None:
                abort_waiter.cancel()

        aborted: bool = abort_signal is not None and abort_signal.aborted
        if communicate in done and not aborted:
            try:
                stdout_data, stderr_data = communicate.result()
            except Exception as e:
                logger.warning(f"Hook '{command}' I/O failed: {e}")
                await _kill_process_group(process)
                return HookExecutionResult(
                    command=command,
                    exit_code=process.returncode,
                    stderr=str(e),
                    duration_ms=_elapsed_ms(started),
                )

            result = HookExecutionResult(
                command=command,
                exit_code=process.returncode,
                stdout=stdout_data.decode("utf-8", errors="replace"),
                stderr=stderr_data.decode("utf-8", errors="replace"),
                duration_ms=_elapsed_ms(started),
            )
            logger.debug(
                f"Hook '{command}' exited {result.exit_code} in {result.duration_ms}ms",
            )
            return result

        communicate.cancel()
        await _kill_process_group(process)
        await asyncio.gather(communicate, return_exceptions=True)

        if aborted:
            logger.debug(f"Hook '{command}' killed by abort")
            return HookExecutionResult(
                command=command,
                duration_ms=_elapsed_ms(started),
                aborted=True,
            )

        logger.warning(f"Hook '{command}' timed out after {timeout_ms}ms")
        return HookExecutionResult(
            command=command,
            stderr=f"Hook timed out after {timeout_ms}ms",
            duration_ms=_elapsed_ms(started),
            timed_out=True,
        )
