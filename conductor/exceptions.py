"""
Errors raised inside Conductor.

Failures a model can act on (invalid tool arguments, permission denials,
hook exit codes) travel as data in tool results and blocks. The classes
here cover the rest: broken settings, an unreachable or failing model
backend, internal invariant violations, and aborts that unwind a turn.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Category shown in front of an error message."""

    UNKNOWN = "UNKNOWN"
    CONFIGURATION = "CONFIGURATION"
    CONNECTION = "CONNECTION"
    API = "API"
    RATE_LIMIT = "RATE_LIMIT"
    VALIDATION = "VALIDATION"
    HOOK = "HOOK"
    ABORTED = "ABORTED"


class ConductorError(Exception):
    """
    Base class for Conductor errors.

    Keyword arguments other than ``cause`` are kept as ``details``;
    ``None`` values are dropped.

    Parameters
    ----------
    message : str
        Text shown to the user, or recorded in an error block.
    cause : Exception | None, optional
        Exception this one was raised from.
    **details : Any
        Structured context for logs.

    Examples
    --------
    >>> str(ValidationError("Unknown tool call id: call_9", field="id"))
    '[VALIDATION] Unknown tool call id: call_9 (field=id)'
    """

    error_code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str, cause: Exception | None = None, **details: Any) -> None:
        super().__init__(message)
        self.message: str = message
        self.cause: Exception | None = cause
        self.details: dict[str, Any] = {k: v for k, v in details.items() if v is not None}

    def __str__(self) -> str:
        text: str = f"[{self.error_code.value}] {self.message}"
        if self.details:
            text += " (" + ", ".join(f"{k}={v}" for k, v in self.details.items()) + ")"
        if self.cause is not None:
            text += f" caused by {type(self.cause).__name__}: {self.cause}"
        return text


class ConfigurationError(ConductorError):
    """
    A settings document or the resolved configuration is unusable.

    Parameters
    ----------
    message : str
        What is wrong.
    config_file : str | None, optional
        Settings file the problem was found in.
    cause : Exception | None, optional
        Parse or I/O error behind it.
    """

    error_code = ErrorCode.CONFIGURATION

    def __init__(
        self,
        message: str,
        config_file: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause, config_file=config_file)
        self.config_file: str | None = config_file


class ConnectionError(ConductorError):
    """The model backend could not be reached, or its stream broke off."""

    error_code = ErrorCode.CONNECTION


class APIError(ConductorError):
    """The model backend answered with an error (``status_code`` detail)."""

    error_code = ErrorCode.API


class RateLimitError(APIError):
    """The model backend kept rate limiting after every retry."""

    error_code = ErrorCode.RATE_LIMIT


class ValidationError(ConductorError):
    """
    An internal invariant was violated.

    Raised for duplicate tool call ids, updates to unknown tool blocks,
    inconsistent tool tables and malformed settings values. The ``field``
    detail names the offending field.
    """

    error_code = ErrorCode.VALIDATION


class HookError(ConductorError):
    """
    Hook configuration that can never be dispatched.

    Hook runs themselves never raise; their failures are results.
    """

    error_code = ErrorCode.HOOK


class AbortedError(ConductorError):
    """
    An abort signal fired.

    The agent loop unwinds on it silently; it is never shown as an error.
    """

    error_code = ErrorCode.ABORTED

    def __init__(self, message: str = "Operation aborted") -> None:
        super().__init__(message)
