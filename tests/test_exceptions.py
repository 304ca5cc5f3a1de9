from __future__ import annotations

import pytest

from conductor.exceptions import (
    AbortedError,
    APIError,
    ConductorError,
    ConfigurationError,
    ErrorCode,
    HookError,
    RateLimitError,
    ValidationError,
)


def test_message_carries_code_and_details() -> None:
    error = ValidationError("Unknown tool call id: call_9", field="id")

    assert error.error_code == ErrorCode.VALIDATION
    assert error.details == {"field": "id"}
    assert str(error) == "[VALIDATION] Unknown tool call id: call_9 (field=id)"


def test_empty_details_are_dropped() -> None:
    error = HookError("Matcher required", event=None)

    assert error.details == {}
    assert str(error) == "[HOOK] Matcher required"


def test_cause_is_rendered() -> None:
    cause = ValueError("Expecting value")
    error = ConfigurationError("Invalid settings", config_file="settings.json", cause=cause)

    assert error.config_file == "settings.json"
    assert error.cause is cause
    assert str(error).endswith("caused by ValueError: Expecting value")


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (APIError("Bad request", status_code=400), ErrorCode.API),
        (RateLimitError("Slow down", status_code=429), ErrorCode.RATE_LIMIT),
        (AbortedError(), ErrorCode.ABORTED),
    ],
)
def test_subclasses_set_their_code(error: ConductorError, code: ErrorCode) -> None:
    assert isinstance(error, ConductorError)
    assert error.error_code == code


def test_rate_limit_is_an_api_error() -> None:
    with pytest.raises(APIError):
        raise RateLimitError("Slow down")


def test_aborted_has_default_message() -> None:
    assert AbortedError().message == "Operation aborted"
