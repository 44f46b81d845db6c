"""
CLI Bridge: Error taxonomy and remediation hints.
"""
import re
from typing import List, Optional, Pattern, Tuple

GENERIC_SOLUTION = (
    "Please check the error message and try again. "
    "If the issue persists, review the server logs for more details."
)

CLI_MISSING_SOLUTION = (
    "Please ensure the data-ops repository is built (cd data-ops && npm run build), "
    "or point DATA_OPS_CLI_PATH at the CLI entry point."
)


class BridgeError(Exception):
    """Base class for every failure the bridge reports to a caller."""

    status_code = 500

    def __init__(self, message: str, solution: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.solution = solution or get_error_solution(message)


class ValidationError(BridgeError):
    status_code = 400

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__(
            "Validation errors: " + ", ".join(self.errors),
            "Please correct the validation errors and try again.",
        )


class CommandNotFoundError(BridgeError):
    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Data-ops CLI not found at {self.path}", CLI_MISSING_SOLUTION)


class SpawnError(BridgeError):
    pass


class ProcessTimeoutError(BridgeError):
    def __init__(self, timeout_s: float):
        self.timeout_s = timeout_s
        super().__init__(
            f"Command execution timed out after {timeout_s:g} seconds",
            "The operation is taking longer than expected. "
            "Please try again or check whether the operation completed.",
        )


class ProcessExitError(BridgeError):
    """A command that ran and failed. Reported as an unsuccessful completion."""

    def __init__(self, code: Optional[int]):
        self.code = code
        super().__init__(f"Command exited with code {code}")


class RateLimitExceeded(BridgeError):
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            "Rate limit exceeded. Please try again later.",
            f"Wait {retry_after} seconds before sending another request.",
        )


# Ordered: the first matching pattern wins
_SOLUTIONS: List[Tuple[Pattern, str]] = [
    (re.compile(r"cli not found|enoent|no such file", re.I), CLI_MISSING_SOLUTION),
    (re.compile(r"validation|required|invalid", re.I),
     "Please ensure all required fields are filled in correctly."),
    (re.compile(r"\b401\b|\b403\b|unauthori[sz]ed|authentication|forbidden", re.I),
     "Please check that your Management API key is correct and has the required permissions."),
    (re.compile(r"permission", re.I),
     "Please check file permissions and ensure you have the necessary access rights."),
    (re.compile(r"not found|\b404\b", re.I),
     "The requested resource was not found. Please verify the environment ID and configuration."),
    (re.compile(r"timed? ?out|etimedout", re.I),
     "The operation is taking longer than expected. Please try again."),
    (re.compile(r"network|econnrefused|econnreset|enotfound|fetch failed|connection", re.I),
     "Please check your internet connection and try again."),
]


def get_error_solution(message: str) -> str:
    """Best-effort remediation hint for a failure message."""
    for pattern, solution in _SOLUTIONS:
        if pattern.search(message or ""):
            return solution
    return GENERIC_SOLUTION
