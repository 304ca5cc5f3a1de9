from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterable
from unittest.mock import AsyncMock

import pytest

from conductor.agent.session import Session
from conductor.config.schema import (
    Configuration,
    HookCommand,
    HookEvent,
    HookGroup,
    ModelConfig,
    PermissionMode,
    PermissionSettings,
    Settings,
)
from conductor.llm.models import ModelResponse, TokenUsage, ToolCall


def text_response(text: str, total_tokens: int = 0) -> ModelResponse:
    return ModelResponse(
        content=text,
        usage=TokenUsage(total_tokens=total_tokens) if total_tokens else None,
        finish_reason="stop",
    )


def tool_response(*calls: tuple[str, str, str], text: str = "") -> ModelResponse:
    """Response requesting ``(id, name, arguments_json)`` tool calls in order."""
    return ModelResponse(
        content=text,
        tool_calls=[ToolCall(id=call_id, name=name, arguments=args) for call_id, name, args in calls],
        finish_reason="tool_calls",
    )


def hook_group(command: str, matcher: str | None = None, timeout_ms: int = 10_000) -> HookGroup:
    return HookGroup(matcher=matcher, hooks=[HookCommand(command=command, timeout_ms=timeout_ms)])


class ScriptedBackend:
    """
    Model backend replaying queued responses.

    ``send`` and ``compress`` are AsyncMocks so tests can inspect calls.
    Once the script runs out every request gets a plain "done" answer.
    """

    def __init__(self, responses: Iterable[ModelResponse] = ()) -> None:
        self.responses: list[ModelResponse] = list(responses)
        self.send = AsyncMock(side_effect=self._next)
        self.compress = AsyncMock(return_value="summary of earlier work")
        self.close = AsyncMock()

    async def _next(
        self,
        messages: list[dict[str, Any]],
        tools: Any = None,
        on_text: Callable[[str], None] | None = None,
    ) -> ModelResponse:
        response = self.responses.pop(0) if self.responses else text_response("done")
        if on_text is not None and response.content:
            on_text(response.content)
        return response

    def sent_messages(self, call_index: int) -> list[dict[str, Any]]:
        return self.send.call_args_list[call_index].args[0]


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    path = (tmp_path / "project").resolve()
    path.mkdir()
    return path


@pytest.fixture
def make_config(project_dir: Path) -> Callable[..., Configuration]:
    def factory(
        hooks: dict[HookEvent, list[HookGroup]] | None = None,
        user_hooks: dict[HookEvent, list[HookGroup]] | None = None,
        mode: PermissionMode = PermissionMode.BYPASS,
        allow: Iterable[str] = (),
        env: dict[str, str] | None = None,
        token_limit: int = 64_000,
    ) -> Configuration:
        return Configuration(
            cwd=project_dir,
            user=Settings(hooks=user_hooks or {}),
            project=Settings(
                hooks=hooks or {},
                env=env or {},
                permissions=PermissionSettings(allow=list(allow)),
            ),
            model=ModelConfig(token_limit=token_limit),
            permission_mode=mode,
        )

    return factory


@pytest.fixture
def make_session(tmp_path: Path, make_config: Callable[..., Configuration]) -> Callable[..., Session]:
    def factory(
        backend: ScriptedBackend,
        can_use_tool: Any = None,
        **config_kwargs: Any,
    ) -> Session:
        return Session(
            make_config(**config_kwargs),
            backend=backend,
            can_use_tool=can_use_tool,
            data_dir=tmp_path / "data",
            user_memory_path=tmp_path / "user" / "memory.md",
        )

    return factory
