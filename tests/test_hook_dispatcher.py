from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from conductor.agent.abort import AbortSignal
from conductor.config.schema import Configuration, HookEvent
from conductor.exceptions import AbortedError
from conductor.hooks.dispatcher import HookDispatcher
from conductor.hooks.models import HookContext, HookExecutionResult
from conductor.hooks.runner import HookRunner
from conductor.messages.blocks import ErrorBlock, Role, ToolBlock
from conductor.messages.store import BlockStore

from conftest import hook_group


def scripted_runner(outcomes: dict[str, dict[str, Any]]) -> MagicMock:
    """Runner whose results are looked up by command."""

    async def run(command: str, json_input: Any, **kwargs: Any) -> HookExecutionResult:
        return HookExecutionResult(command=command, **outcomes[command])

    runner = MagicMock(spec=HookRunner)
    runner.run = AsyncMock(side_effect=run)
    return runner


@pytest.fixture
def context(project_dir: Path) -> HookContext:
    return HookContext(
        session_id="session-1",
        transcript_path=project_dir / "transcript.json",
        cwd=project_dir,
    )


def make_dispatcher(
    config: Configuration,
    outcomes: dict[str, dict[str, Any]],
) -> tuple[HookDispatcher, BlockStore]:
    store = BlockStore()
    return HookDispatcher(config, store, runner=scripted_runner(outcomes)), store


@pytest.mark.asyncio
async def test_no_configured_hooks_is_a_no_op(make_config: Callable[..., Configuration], context: HookContext) -> None:
    dispatcher, store = make_dispatcher(make_config(), {})

    outcome = await dispatcher.dispatch(HookEvent.STOP, context)

    assert outcome.results == []
    assert not outcome.blocked
    dispatcher.runner.run.assert_not_called()
    assert len(store) == 0


@pytest.mark.asyncio
async def test_prompt_hook_stdout_becomes_user_turn(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(hooks={HookEvent.USER_PROMPT_SUBMIT: [hook_group("ctx")]})
    dispatcher, store = make_dispatcher(config, {"ctx": {"exit_code": 0, "stdout": "branch: main\n"}})
    prompt = store.add_user_message("fix it")

    outcome = await dispatcher.dispatch(
        HookEvent.USER_PROMPT_SUBMIT,
        context.model_copy(update={"prompt": "fix it", "user_message": prompt}),
    )

    assert not outcome.blocked
    assert [m.text for m in store.messages] == ["fix it", "branch: main"]


@pytest.mark.asyncio
async def test_prompt_hook_exit_two_retracts_prompt(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(hooks={HookEvent.USER_PROMPT_SUBMIT: [hook_group("guard")]})
    dispatcher, store = make_dispatcher(config, {"guard": {"exit_code": 2, "stderr": "no secrets\n"}})
    store.add_user_message("fix it")
    prompt = store.add_user_message("fix it")

    outcome = await dispatcher.dispatch(
        HookEvent.USER_PROMPT_SUBMIT,
        context.model_copy(update={"prompt": "fix it", "user_message": prompt}),
    )

    assert outcome.blocked
    assert outcome.reason == "no secrets"
    assert [m.role for m in store.messages] == [Role.USER, Role.ASSISTANT]
    assert store.messages[1].blocks[0].content == "no secrets"


@pytest.mark.asyncio
async def test_pre_tool_block_records_result_on_tool_block(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(hooks={HookEvent.PRE_TOOL_USE: [hook_group("deny", matcher="Write")]})
    dispatcher, store = make_dispatcher(config, {"deny": {"exit_code": 2, "stderr": "nope"}})
    store.add_tool_block("call_1", "Write", "{}")

    outcome = await dispatcher.dispatch(
        HookEvent.PRE_TOOL_USE,
        context.model_copy(update={"tool_name": "Write", "tool_id": "call_1"}),
    )

    block = store.get_tool_block("call_1")
    assert outcome.blocked
    assert block.result == "nope"
    assert block.success is False
    assert not block.is_running


@pytest.mark.asyncio
async def test_pre_tool_hooks_only_run_for_matching_tools(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(hooks={HookEvent.PRE_TOOL_USE: [hook_group("deny", matcher="Write|Edit")]})
    dispatcher, store = make_dispatcher(config, {"deny": {"exit_code": 2, "stderr": "nope"}})
    store.add_tool_block("call_1", "Read", "{}")

    outcome = await dispatcher.dispatch(
        HookEvent.PRE_TOOL_USE,
        context.model_copy(update={"tool_name": "Read", "tool_id": "call_1"}),
    )

    assert not outcome.blocked
    dispatcher.runner.run.assert_not_called()
    assert store.get_tool_block("call_1").is_running


@pytest.mark.asyncio
async def test_first_blocking_result_wins(make_config: Callable[..., Configuration], context: HookContext) -> None:
    config = make_config(
        user_hooks={HookEvent.STOP: [hook_group("first")]},
        hooks={HookEvent.STOP: [hook_group("second")]},
    )
    dispatcher, store = make_dispatcher(
        config,
        {
            "first": {"exit_code": 2, "stderr": "keep going"},
            "second": {"exit_code": 2, "stderr": "ignored"},
        },
    )

    outcome = await dispatcher.dispatch(HookEvent.STOP, context)

    assert outcome.reason == "keep going"
    assert [r.command for r in outcome.results] == ["first", "second"]
    assert [m.text for m in store.messages] == ["keep going"]


@pytest.mark.asyncio
async def test_every_post_tool_feedback_is_applied(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(
        hooks={
            HookEvent.POST_TOOL_USE: [
                hook_group("lint", matcher="Write"),
                hook_group("types", matcher="Write"),
            ],
        },
    )
    dispatcher, store = make_dispatcher(
        config,
        {
            "lint": {"exit_code": 2, "stderr": "line too long"},
            "types": {"exit_code": 2, "stderr": "missing annotation"},
        },
    )

    outcome = await dispatcher.dispatch(
        HookEvent.POST_TOOL_USE,
        context.model_copy(update={"tool_name": "Write", "tool_response": {"success": True}}),
    )

    assert not outcome.blocked
    assert [m.text for m in store.messages] == ["line too long", "missing annotation"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("outcome_fields", "expected"),
    [
        ({"exit_code": 1, "stderr": "lint crashed"}, "lint crashed"),
        ({"exit_code": 127, "stderr": ""}, "Hook execution failed"),
        ({"timed_out": True, "stderr": "Hook timed out after 10ms"}, "Hook timed out after 10ms"),
    ],
)
async def test_other_failures_add_error_block(
    make_config: Callable[..., Configuration],
    context: HookContext,
    outcome_fields: dict[str, Any],
    expected: str,
) -> None:
    config = make_config(hooks={HookEvent.STOP: [hook_group("check")]})
    dispatcher, store = make_dispatcher(config, {"check": outcome_fields})

    outcome = await dispatcher.dispatch(HookEvent.STOP, context)

    assert not outcome.blocked
    blocks = store.messages[-1].blocks
    assert isinstance(blocks[0], ErrorBlock)
    assert blocks[0].content == expected


@pytest.mark.asyncio
async def test_aborted_dispatch_applies_nothing(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(hooks={HookEvent.STOP: [hook_group("slow")]})
    dispatcher, store = make_dispatcher(config, {"slow": {"aborted": True}})
    signal = AbortSignal("tools")
    signal.abort()

    with pytest.raises(AbortedError):
        await dispatcher.dispatch(HookEvent.STOP, context, abort_signal=signal)

    assert len(store) == 0


def test_matchers_on_prompt_and_stop_events_are_ignored(make_config: Callable[..., Configuration]) -> None:
    config = make_config(hooks={HookEvent.STOP: [hook_group("check", matcher="Write")]})
    dispatcher = HookDispatcher(config, BlockStore())

    assert dispatcher.resolve_commands(HookEvent.STOP) == [("check", 10_000)]


@pytest.mark.asyncio
async def test_real_hooks_run_concurrently_and_apply_in_order(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(
        hooks={
            HookEvent.USER_PROMPT_SUBMIT: [
                hook_group("sleep 0.3; echo slow"),
                hook_group("echo fast"),
            ],
        },
    )
    store = BlockStore()
    dispatcher = HookDispatcher(config, store)

    outcome = await dispatcher.dispatch(HookEvent.USER_PROMPT_SUBMIT, context.model_copy(update={"prompt": "hi"}))

    assert [r.exit_code for r in outcome.results] == [0, 0]
    assert [m.text for m in store.messages] == ["slow", "fast"]


def store_snapshot(store: BlockStore) -> list[tuple[str, list[str]]]:
    def describe(block: Any) -> str:
        if isinstance(block, ToolBlock):
            return f"tool:{block.result}:{'running' if block.is_running else 'done'}"
        if isinstance(block, ErrorBlock):
            return f"error:{block.content}"
        return f"text:{block.content}"

    return [(m.role.value, [describe(b) for b in m.blocks]) for m in store.messages]


PROMPT = ("user", ["text:hello"])
PENDING_TOOL = ("assistant", ["tool:None:running"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("event", "exit_code", "blocked", "expected"),
    [
        (HookEvent.PRE_TOOL_USE, 0, False, [PROMPT, PENDING_TOOL]),
        (HookEvent.PRE_TOOL_USE, 2, True, [PROMPT, ("assistant", ["tool:err:done"])]),
        (HookEvent.PRE_TOOL_USE, 1, False, [PROMPT, ("assistant", ["tool:None:running", "error:err"])]),
        (HookEvent.POST_TOOL_USE, 0, False, [PROMPT, PENDING_TOOL]),
        (HookEvent.POST_TOOL_USE, 2, False, [PROMPT, PENDING_TOOL, ("user", ["text:err"])]),
        (HookEvent.POST_TOOL_USE, 1, False, [PROMPT, ("assistant", ["tool:None:running", "error:err"])]),
        (HookEvent.USER_PROMPT_SUBMIT, 0, False, [PROMPT, PENDING_TOOL, ("user", ["text:out"])]),
        (HookEvent.USER_PROMPT_SUBMIT, 2, True, [("assistant", ["tool:None:running", "error:err"])]),
        (HookEvent.USER_PROMPT_SUBMIT, 1, False, [PROMPT, ("assistant", ["tool:None:running", "error:err"])]),
        (HookEvent.STOP, 0, False, [PROMPT, PENDING_TOOL]),
        (HookEvent.STOP, 2, True, [PROMPT, PENDING_TOOL, ("user", ["text:err"])]),
        (HookEvent.STOP, 1, False, [PROMPT, ("assistant", ["tool:None:running", "error:err"])]),
    ],
)
async def test_exit_code_semantics_per_event(
    make_config: Callable[..., Configuration],
    context: HookContext,
    event: HookEvent,
    exit_code: int,
    blocked: bool,
    expected: list[tuple[str, list[str]]],
) -> None:
    matcher = "Write" if event.requires_matcher else None
    config = make_config(hooks={event: [hook_group("check", matcher=matcher)]})
    dispatcher, store = make_dispatcher(
        config,
        {"check": {"exit_code": exit_code, "stdout": "out\n", "stderr": "err\n"}},
    )
    prompt = store.add_user_message("hello")
    store.add_tool_block("call_1", "Write", "{}")

    outcome = await dispatcher.dispatch(
        event,
        context.model_copy(
            update={"tool_name": "Write", "tool_id": "call_1", "prompt": "hello", "user_message": prompt},
        ),
    )

    assert outcome.blocked is blocked
    assert store_snapshot(store) == expected


@pytest.mark.asyncio
async def test_blocked_prompt_takes_no_context_from_other_hooks(
    make_config: Callable[..., Configuration],
    context: HookContext,
) -> None:
    config = make_config(
        hooks={HookEvent.USER_PROMPT_SUBMIT: [hook_group("ctx"), hook_group("guard"), hook_group("late")]},
    )
    dispatcher, store = make_dispatcher(
        config,
        {
            "ctx": {"exit_code": 0, "stdout": "branch: main\n"},
            "guard": {"exit_code": 2, "stderr": "no secrets\n"},
            "late": {"exit_code": 0, "stdout": "more context\n"},
        },
    )
    prompt = store.add_user_message("hello")

    outcome = await dispatcher.dispatch(
        HookEvent.USER_PROMPT_SUBMIT,
        context.model_copy(update={"prompt": "hello", "user_message": prompt}),
    )

    assert outcome.blocked
    assert store_snapshot(store) == [("assistant", ["error:no secrets"])]
    assert store.to_api_messages() == []
