from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from conductor.agent.abort import AbortSignal
from conductor.config.schema import PermissionMode
from conductor.safety.confirmation import ConfirmationQueue
from conductor.safety.models import PermissionBehavior, PermissionDecision, PermissionRequest
from conductor.safety.permissions import PermissionGate
from conductor.safety.rules import path_matches, rule_for, rule_matches, split_command


def bash_request(command: str) -> PermissionRequest:
    return PermissionRequest(tool_name="Bash", tool_input={"command": command}, command=command)


@pytest.mark.asyncio
async def test_bypass_allows_without_asking() -> None:
    queue = MagicMock(spec=ConfirmationQueue)
    callback = MagicMock()
    gate = PermissionGate(PermissionMode.BYPASS, queue=queue, can_use_tool=callback)

    decision = await gate.check_permission("Delete")

    assert decision.allowed
    callback.assert_not_called()
    queue.request.assert_not_called()


@pytest.mark.asyncio
async def test_mode_can_be_overridden_per_call() -> None:
    gate = PermissionGate(PermissionMode.DEFAULT, can_use_tool=MagicMock(return_value={"behavior": "deny"}))

    decision = await gate.check_permission("Write", mode=PermissionMode.BYPASS)

    assert decision.allowed


@pytest.mark.asyncio
async def test_callback_mapping_answer_is_accepted() -> None:
    callback = MagicMock(return_value={"behavior": "allow"})
    gate = PermissionGate(can_use_tool=callback)

    decision = await gate.check_permission("Write")

    assert decision.allowed
    callback.assert_called_once_with("Write")


@pytest.mark.asyncio
async def test_async_callback_denial_keeps_its_message() -> None:
    callback = AsyncMock(return_value={"behavior": "deny", "message": "read-only session"})
    gate = PermissionGate(can_use_tool=callback)

    decision = await gate.check_permission("Edit")

    assert decision.behavior == PermissionBehavior.DENY
    assert decision.message == "read-only session"


@pytest.mark.asyncio
async def test_denial_without_message_gets_default() -> None:
    gate = PermissionGate(can_use_tool=MagicMock(return_value=PermissionDecision(behavior=PermissionBehavior.DENY)))

    decision = await gate.check_permission("Bash")

    assert decision.message == "Permission to use Bash was denied"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "callback",
    [
        MagicMock(side_effect=RuntimeError("host crashed")),
        MagicMock(return_value={"behavior": "maybe"}),
        MagicMock(return_value=None),
        MagicMock(return_value="yes"),
    ],
)
async def test_callback_failures_deny(callback: MagicMock) -> None:
    gate = PermissionGate(can_use_tool=callback)

    decision = await gate.check_permission("Write")

    assert not decision.allowed
    assert decision.message


@pytest.mark.asyncio
async def test_callback_timeout_denies() -> None:
    async def slow(tool_name: str) -> dict[str, str]:
        await asyncio.sleep(30)
        return {"behavior": "allow"}

    gate = PermissionGate(can_use_tool=slow, callback_timeout=0.05)

    decision = await gate.check_permission("Write")

    assert not decision.allowed
    assert "timed out" in decision.message


@pytest.mark.asyncio
async def test_abort_while_callback_pending_denies() -> None:
    started = asyncio.Event()

    async def slow(tool_name: str) -> dict[str, str]:
        started.set()
        await asyncio.sleep(30)
        return {"behavior": "allow"}

    signal = AbortSignal("tools")
    gate = PermissionGate(can_use_tool=slow)
    check = asyncio.create_task(gate.check_permission("Write", abort_signal=signal))
    await started.wait()

    signal.abort()
    decision = await asyncio.wait_for(check, timeout=5)

    assert not decision.allowed
    assert decision.message == "aborted by user"


@pytest.mark.asyncio
async def test_queue_presents_items_one_at_a_time_in_order() -> None:
    queue = ConfirmationQueue()
    gate = PermissionGate(queue=queue)
    checks = [
        asyncio.create_task(gate.check_permission(name, request=PermissionRequest(tool_name=name)))
        for name in ("Write", "Edit", "Delete")
    ]
    await asyncio.sleep(0)

    first = await queue.next()
    assert first.tool_name == "Write"
    assert [item.tool_name for item in queue.pending] == ["Edit", "Delete"]

    queue.resolve(first, PermissionDecision.deny("not that file"))
    second = await queue.next()
    assert second.tool_name == "Edit"
    queue.resolve(second, PermissionDecision.allow())
    third = await queue.next()
    queue.resolve(third, PermissionDecision.allow())

    decisions = await asyncio.gather(*checks)
    assert [d.allowed for d in decisions] == [False, True, True]
    assert decisions[0].message == "not that file"
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_each_item_is_presented_once() -> None:
    queue = ConfirmationQueue()
    waiter = asyncio.create_task(queue.request(PermissionRequest(tool_name="Write")))
    await asyncio.sleep(0)

    item = await queue.next()
    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(queue.next(), timeout=0.05)

    assert queue.resolve(item, PermissionDecision.allow())
    assert not queue.resolve(item, PermissionDecision.deny("late"))
    assert (await waiter).allowed


@pytest.mark.asyncio
async def test_cancelling_one_item_leaves_the_rest_pending() -> None:
    queue = ConfirmationQueue()
    first = asyncio.create_task(queue.request(PermissionRequest(tool_name="Write")))
    second = asyncio.create_task(queue.request(PermissionRequest(tool_name="Bash")))
    await asyncio.sleep(0)

    assert queue.cancel(queue.active)

    assert (await first).message == "aborted by user"
    assert not second.done()
    assert queue.active.tool_name == "Bash"
    queue.resolve(queue.active, PermissionDecision.allow())
    assert (await second).allowed


@pytest.mark.asyncio
async def test_cancelled_requester_removes_its_item() -> None:
    queue = ConfirmationQueue()
    first = asyncio.create_task(queue.request(PermissionRequest(tool_name="Write")))
    second = asyncio.create_task(queue.request(PermissionRequest(tool_name="Edit")))
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.gather(first, return_exceptions=True)

    assert queue.active.tool_name == "Edit"
    item = await queue.next()
    queue.resolve(item, PermissionDecision.allow())
    assert (await second).allowed


@pytest.mark.asyncio
async def test_abort_while_queued_denies() -> None:
    queue = ConfirmationQueue()
    signal = AbortSignal("tools")
    gate = PermissionGate(queue=queue)
    check = asyncio.create_task(gate.check_permission("Write", abort_signal=signal))
    await queue.next()

    signal.abort()
    decision = await asyncio.wait_for(check, timeout=5)

    assert decision.message == "aborted by user"
    assert len(queue) == 0


@pytest.mark.asyncio
async def test_configured_allow_rule_skips_confirmation() -> None:
    queue = MagicMock(spec=ConfirmationQueue)
    gate = PermissionGate(queue=queue, allow_rules=["Bash(git status:*)"])

    decision = await gate.check_permission("Bash", request=bash_request("git status -s"))

    assert decision.allowed
    queue.request.assert_not_called()


@pytest.mark.asyncio
async def test_always_allow_adds_session_rule() -> None:
    queue = ConfirmationQueue()
    gate = PermissionGate(queue=queue)

    check = asyncio.create_task(gate.check_permission("Bash", request=bash_request("make test")))
    item = await queue.next()
    queue.resolve(item, PermissionDecision.allow(remember=True))
    assert (await check).allowed
    assert gate.session_rules == ["Bash(make test)"]

    again = await gate.check_permission("Bash", request=bash_request("make test"))
    assert again.allowed
    assert len(queue) == 0


@pytest.mark.parametrize(
    ("rule", "request_", "expected"),
    [
        ("Write", PermissionRequest(tool_name="Write"), True),
        ("Write", PermissionRequest(tool_name="Edit"), False),
        ("Bash(git status:*)", bash_request("git status"), True),
        ("Bash(git status:*)", bash_request("git push"), False),
        ("Bash(ls)", bash_request("ls -la"), False),
        ("Bash(git status:*)", bash_request("git status; touch pwned"), False),
        ("Bash(git status:*)", bash_request("git status\ntouch pwned"), False),
        ("Bash(git status:*)", bash_request("git status | tee out.txt"), False),
        ("Bash(git status:*)", bash_request("git status && git status -s"), True),
        ("Bash(git status:*)", bash_request("git status $(touch pwned)"), False),
        ("Bash(git diff:*)", bash_request("git diff <(touch pwned)"), False),
        ("Bash(echo:*)", bash_request("echo 'a; touch b'"), True),
        ("Bash(make test && make lint)", bash_request("make test && make lint"), True),
        ("Edit(src/*)", PermissionRequest(tool_name="Edit", tool_input={"file_path": "src/app.py"}), True),
        ("Edit(src/*)", PermissionRequest(tool_name="Edit", tool_input={"file_path": "docs/a.md"}), False),
        ("Edit(src/*)", PermissionRequest(tool_name="Edit", tool_input={"file_path": "src/a/b/secret.py"}), False),
        ("not a rule!", PermissionRequest(tool_name="Write"), False),
    ],
)
def test_rule_matching(rule: str, request_: PermissionRequest, expected: bool) -> None:
    assert rule_matches(rule, request_) is expected


def test_rule_for_request() -> None:
    assert rule_for(bash_request(" npm test ")) == "Bash(npm test)"
    assert rule_for(PermissionRequest(tool_name="Delete")) == "Delete"


@pytest.mark.parametrize(
    ("command", "expected"),
    [
        ("git status", ["git status"]),
        ("npm test && npm run lint || echo failed", ["npm test", "npm run lint", "echo failed"]),
        ("ls -la | grep  py; pwd &", ["ls -la", "grep py", "pwd"]),
        ('git commit -m "fix: a; b"', ['git commit -m "fix: a; b"']),
        ("cat a.txt 2>&1", ["cat a.txt 2 >& 1"]),
        ("", []),
        ("echo `id`", None),
        (r"echo \; rm x", None),
        ("(cd src && rm -rf build)", None),
        ("echo 'unterminated", None),
    ],
)
def test_split_command(command: str, expected: list[str] | None) -> None:
    assert split_command(command) == expected


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("src/*", "src/app.py", True),
        ("src/*", "./src/app.py", True),
        ("src/*", "src/pkg/app.py", False),
        ("src/**", "src/pkg/app.py", True),
        ("src/**/*.py", "src/app.py", True),
        ("src/**/*.py", "src/pkg/deep/app.py", True),
        ("src/**/*.py", "src/pkg/notes.md", False),
        ("src/*", "SRC/app.py", False),
        ("src/**", "src/../secrets.env", False),
    ],
)
def test_path_globs_match_per_segment(pattern: str, path: str, expected: bool) -> None:
    assert path_matches(pattern, path) is expected
