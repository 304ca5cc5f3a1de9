"""
Data models for permission decisions and confirmation requests.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from conductor.constants import ABORTED_BY_USER_MESSAGE


class PermissionBehavior(str, Enum):
    """
    Outcome of a permission check.

    Attributes
    ----------
    ALLOW : str
        The tool call may perform its effect.
    DENY : str
        The tool call fails with the decision's message.
    """

    ALLOW = "allow"
    DENY = "deny"


class PermissionDecision(BaseModel):
    """
    Decision returned by the permission gate.

    Parameters
    ----------
    behavior : PermissionBehavior
        Allow or deny.
    message : str | None, optional
        Reason shown to the model on denial.
    remember : bool, default=False
        Allow matching calls for the rest of the session.

    Examples
    --------
    >>> PermissionDecision.deny("not now").allowed
    False
    """

    behavior: PermissionBehavior = Field(description="Allow or deny")
    message: str | None = Field(default=None, description="Denial reason")
    remember: bool = Field(default=False, description="Add a session allow rule")

    @property
    def allowed(self) -> bool:
        return self.behavior == PermissionBehavior.ALLOW

    @classmethod
    def allow(cls, remember: bool = False) -> "PermissionDecision":
        return cls(behavior=PermissionBehavior.ALLOW, remember=remember)

    @classmethod
    def deny(cls, message: str) -> "PermissionDecision":
        return cls(behavior=PermissionBehavior.DENY, message=message)

    @classmethod
    def aborted(cls) -> "PermissionDecision":
        return cls.deny(ABORTED_BY_USER_MESSAGE)


class PermissionRequest(BaseModel):
    """
    What a restricted tool call is about to do.

    Parameters
    ----------
    tool_name : str
        Restricted tool name.
    tool_input : dict[str, Any]
        Validated tool arguments.
    description : str
        One-line summary for the confirmation prompt.
    diff : str | None, optional
        Unified diff preview for file changes.
    command : str | None, optional
        Shell command for Bash calls.
    """

    tool_name: str = Field(description="Tool name")
    tool_input: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    description: str = Field(default="", description="Action description")
    diff: str | None = Field(default=None, description="Diff preview")
    command: str | None = Field(default=None, description="Shell command")
