from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path

import pytest

from conductor.agent.abort import AbortSignal
from conductor.config.schema import HookEvent
from conductor.hooks.environment import build_hook_environment
from conductor.hooks.models import HookJsonInput
from conductor.hooks.runner import HookRunner


@pytest.fixture
def payload(project_dir: Path) -> HookJsonInput:
    return HookJsonInput(
        session_id="session-1",
        transcript_path=str(project_dir / "transcript.json"),
        cwd=str(project_dir),
        hook_event_name=HookEvent.PRE_TOOL_USE,
        tool_name="Write",
        tool_input={"file_path": "a.txt", "content": "hi"},
    )


def test_payload_omits_unset_fields(payload: HookJsonInput) -> None:
    document = json.loads(payload.to_json())

    assert document["hook_event_name"] == "PreToolUse"
    assert document["tool_input"] == {"file_path": "a.txt", "content": "hi"}
    assert "tool_response" not in document
    assert "prompt" not in document


def test_environment_overrides_win(project_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LINT_LEVEL", "loose")

    env = build_hook_environment(project_dir, {"LINT_LEVEL": "strict"})

    assert env["CONDUCTOR_PROJECT_DIR"] == str(project_dir)
    assert env["LINT_LEVEL"] == "strict"
    assert "PATH" in env


@pytest.mark.asyncio
async def test_hook_reads_payload_from_stdin(project_dir: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run("cat", payload, cwd=project_dir)

    assert result.exit_code == 0
    assert result.success
    assert json.loads(result.stdout)["tool_name"] == "Write"


@pytest.mark.asyncio
async def test_hook_reports_exit_code_and_stderr(project_dir: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run("echo 'not allowed' >&2; exit 2", payload, cwd=project_dir)

    assert result.exit_code == 2
    assert result.stderr.strip() == "not allowed"
    assert not result.success


@pytest.mark.asyncio
async def test_hook_runs_in_project_with_environment(project_dir: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run(
        'echo "$CONDUCTOR_PROJECT_DIR|$LINT_LEVEL"; pwd',
        payload,
        cwd=project_dir,
        env_overrides={"LINT_LEVEL": "strict"},
    )

    lines = result.stdout.splitlines()
    assert lines[0] == f"{project_dir}|strict"
    assert Path(lines[1]).resolve() == project_dir


@pytest.mark.asyncio
async def test_hook_that_ignores_stdin_still_completes(project_dir: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run("exit 0", payload, cwd=project_dir)

    assert result.exit_code == 0


@pytest.mark.asyncio
async def test_hook_is_killed_after_timeout(project_dir: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run("sleep 30", payload, cwd=project_dir, timeout_ms=200)

    assert result.timed_out
    assert result.exit_code is None
    assert result.stderr == "Hook timed out after 200ms"
    assert result.duration_ms < 10_000


@pytest.mark.asyncio
async def test_abort_kills_hook_process(project_dir: Path, payload: HookJsonInput) -> None:
    signal = AbortSignal("tools")
    pid_file = project_dir / "hook.pid"

    task = asyncio.create_task(
        HookRunner().run(
            f"echo $$ > {pid_file}; sleep 30",
            payload,
            cwd=project_dir,
            abort_signal=signal,
        ),
    )
    for _ in range(200):
        if pid_file.exists() and pid_file.read_text().strip():
            break
        await asyncio.sleep(0.02)
    signal.abort()

    result = await asyncio.wait_for(task, timeout=5)

    assert result.aborted
    assert result.exit_code is None
    with pytest.raises(ProcessLookupError):
        os.kill(int(pid_file.read_text().strip()), 0)


@pytest.mark.asyncio
async def test_already_aborted_signal_skips_spawn(project_dir: Path, payload: HookJsonInput) -> None:
    signal = AbortSignal("tools")
    signal.abort()

    result = await HookRunner().run(f"touch {project_dir / 'ran'}", payload, cwd=project_dir, abort_signal=signal)

    assert result.aborted
    assert not (project_dir / "ran").exists()


@pytest.mark.asyncio
async def test_spawn_failure_is_reported_not_raised(tmp_path: Path, payload: HookJsonInput) -> None:
    result = await HookRunner().run("echo hi", payload, cwd=tmp_path / "missing")

    assert result.exit_code is None
    assert result.stderr
    assert not result.success
