"""
Configuration schema definitions for Conductor.

This module defines the Pydantic models for the user-level and project-level
settings documents (hooks, hook environment, permission rules, model
settings) and the merged ``Configuration`` a session runs with.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from conductor.constants import DEFAULT_HOOK_TIMEOUT_MS, DEFAULT_MODEL, DEFAULT_TOKEN_LIMIT
from conductor.exceptions import HookError, ValidationError


class HookEvent(str, Enum):
    """
    Lifecycle points at which hooks run.

    Examples
    --------
    >>> HookEvent("PreToolUse").requires_matcher
    True
    """

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    STOP = "Stop"

    @property
    def requires_matcher(self) -> bool:
        """Whether groups for this event are selected by tool name."""
        return self in (HookEvent.PRE_TOOL_USE, HookEvent.POST_TOOL_USE)


class PermissionMode(str, Enum):
    """
    How restricted tool calls are gated.

    Attributes
    ----------
    DEFAULT : str
        Ask the host callback or the user.
    BYPASS : str
        Allow every call without asking.
    """

    DEFAULT = "default"
    BYPASS = "bypass"


class HookCommand(BaseModel):
    """
    A single shell command run for a hook event.

    Parameters
    ----------
    type : Literal["command"]
        Only command hooks are supported.
    command : str
        Shell command line.
    timeout_ms : int, default=10000
        Time after which the process is killed.
    """

    type: Literal["command"] = Field(default="command", description="Hook type")
    command: str = Field(description="Shell command to execute")
    timeout_ms: int = Field(
        default=DEFAULT_HOOK_TIMEOUT_MS,
        ge=1,
        description="Execution timeout in milliseconds",
    )

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        if not v.strip():
            raise ValidationError("Hook command must not be empty", field="command")
        return v


class HookGroup(BaseModel):
    """
    Ordered hook commands sharing one matcher.

    Parameters
    ----------
    matcher : str | None, optional
        Tool-name pattern. Required for PreToolUse and PostToolUse.
    hooks : list[HookCommand]
        Commands to run, in order.

    Examples
    --------
    >>> group = HookGroup(
    ...     matcher="Write|Edit",
    ...     hooks=[HookCommand(command="./lint.sh")]
    ... )
    """

    matcher: str | None = Field(default=None, description="Tool name matcher")
    hooks: list[HookCommand] = Field(default_factory=list, description="Hook commands")

    @property
    def commands(self) -> list[str]:
        return [hook.command for hook in self.hooks]


class PermissionSettings(BaseModel):
    """
    Permission rules from a settings document.

    Parameters
    ----------
    allow : list[str], default=[]
        Tool names or ``Bash(prefix:*)`` patterns that never ask.
    """

    allow: list[str] = Field(default_factory=list, description="Allow rules")


class ModelSettings(BaseModel):
    """Model overrides from a settings document. Unset fields inherit."""

    name: str | None = Field(default=None, description="Model name")
    temperature: float | None = Field(
        default=None,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (0.0-2.0)",
    )
    token_limit: int | None = Field(
        default=None,
        ge=1,
        description="Total tokens above which history is compressed",
    )


class Settings(BaseModel):
    """
    One settings document (user-level or project-level).

    The JSON shape is::

        {
          "hooks": {"PreToolUse": [{"matcher": "Write", "hooks": [
              {"type": "command", "command": "./check.sh"}]}]},
          "env": {"KEY": "value"},
          "permissions": {"allow": ["Bash(git status:*)"]},
          "model": {"name": "gpt-4o"}
        }

    Raises
    ------
    HookError
        If a PreToolUse or PostToolUse group has no matcher.
    """

    hooks: dict[HookEvent, list[HookGroup]] = Field(
        default_factory=dict,
        description="Hook groups per event",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Environment variables for hook processes",
    )
    permissions: PermissionSettings = Field(
        default_factory=PermissionSettings,
        description="Permission rules",
    )
    model: ModelSettings = Field(
        default_factory=ModelSettings,
        description="Model settings",
    )

    @model_validator(mode="after")
    def validate_matchers(self) -> Settings:
        for event, groups in self.hooks.items():
            if not event.requires_matcher:
                continue
            for group in groups:
                if not group.matcher or not group.matcher.strip():
                    raise HookError(
                        f"{event.value} hook groups require a matcher",
                        event=event.value,
                    )
        return self


class ModelConfig(BaseModel):
    """
    Resolved configuration for the model backend.

    Parameters
    ----------
    name : str, default="gpt-4o"
        The name of the model to use.
    temperature : float, default=1.0
        Sampling temperature between 0.0 and 2.0.
    token_limit : int, default=64000
        Compression threshold on reported total tokens.
    """

    name: str = Field(default=DEFAULT_MODEL, description="Model name")
    temperature: float = Field(
        default=1.0,
        ge=0.0,
        le=2.0,
        description="Sampling temperature (0.0-2.0)",
    )
    token_limit: int = Field(
        default=DEFAULT_TOKEN_LIMIT,
        ge=1,
        description="Compression threshold in tokens",
    )


class Configuration(BaseModel):
    """
    Merged configuration for one session.

    Parameters
    ----------
    cwd : Path, optional
        Project root. Defaults to the current directory.
    user : Settings, optional
        User-level settings document.
    project : Settings, optional
        Project-level settings document.
    model : ModelConfig, optional
        Resolved model configuration.
    permission_mode : PermissionMode, default=PermissionMode.DEFAULT
        Permission mode chosen on the command line.
    debug : bool, default=False
        Enable debug logging.

    Examples
    --------
    >>> config = Configuration(permission_mode=PermissionMode.BYPASS)
    >>> config.hook_groups(HookEvent.STOP)
    []
    """

    cwd: Path = Field(default_factory=Path.cwd, description="Project root")
    user: Settings = Field(default_factory=Settings, description="User settings")
    project: Settings = Field(default_factory=Settings, description="Project settings")
    model: ModelConfig = Field(default_factory=ModelConfig, description="Model configuration")
    permission_mode: PermissionMode = Field(
        default=PermissionMode.DEFAULT,
        description="Permission mode",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    @property
    def api_key(self) -> str | None:
        return os.environ.get("API_KEY")

    @property
    def base_url(self) -> str | None:
        return os.environ.get("BASE_URL")

    def hook_groups(self, event: HookEvent) -> list[HookGroup]:
        """
        Hook groups for an event, user-level first then project-level.

        Parameters
        ----------
        event : HookEvent
            Lifecycle event.

        Returns
        -------
        list[HookGroup]
            Concatenated groups; both levels run.
        """
        return [
            *self.user.hooks.get(event, []),
            *self.project.hooks.get(event, []),
        ]

    def merged_env(self) -> dict[str, str]:
        """Hook environment overrides; project values win on collision."""
        return {**self.user.env, **self.project.env}

    def allow_rules(self) -> list[str]:
        return [*self.user.permissions.allow, *self.project.permissions.allow]

    def validate(self) -> list[str]:
        """
        Validate the configuration and return any errors.

        Returns
        -------
        list[str]
            List of error messages. Empty list if configuration is valid.
        """
        errors: list[str] = []

        if not self.cwd.exists():
            errors.append(f"Working directory does not exist: {self.cwd}")

        return errors
