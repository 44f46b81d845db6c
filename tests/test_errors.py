import pytest

from cli_bridge.errors import (
    CLI_MISSING_SOLUTION,
    GENERIC_SOLUTION,
    ProcessExitError,
    ProcessTimeoutError,
    RateLimitExceeded,
    SpawnError,
    ValidationError,
    get_error_solution,
)


@pytest.mark.parametrize("message,fragment", [
    ("spawn node ENOENT", "npm run build"),
    ("[Errno 2] No such file or directory: 'node'", "npm run build"),
    ("apiKey is required for environment backup", "required fields"),
    ("Request failed with status code 401", "API key"),
    ("EACCES: permission denied, open 'backup.zip'", "file permissions"),
    ("Environment not found", "not found"),
    ("socket hang up: ECONNRESET", "internet connection"),
])
def test_solution_lookup(message, fragment):
    assert fragment in get_error_solution(message)


def test_unrecognised_message_gets_generic_solution():
    assert get_error_solution("something odd happened") == GENERIC_SOLUTION
    assert get_error_solution("") == GENERIC_SOLUTION


def test_error_shapes():
    err = ValidationError(["a is required", "b appears to be invalid"])
    assert err.message == "Validation errors: a is required, b appears to be invalid"
    assert err.status_code == 400

    assert ProcessExitError(7).message == "Command exited with code 7"
    assert "1.5 seconds" in ProcessTimeoutError(1.5).message

    limited = RateLimitExceeded(60)
    assert limited.status_code == 429 and limited.retry_after == 60

    assert SpawnError("[Errno 2] No such file or directory").solution == CLI_MISSING_SOLUTION
