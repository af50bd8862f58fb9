# file: src/utils/errors.py
# Error taxonomy of the console core. Every error carries a human-readable message
# that the HTTP layer forwards as-is.

from typing import Any, Optional


class ConsoleError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ApiError(ConsoleError):
    """Transport or management API failure (network, timeout, non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None, code: Optional[str] = None,
                 data: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.data = data


class AuthError(ConsoleError):
    """Login rejected, malformed credential or network failure while authenticating."""


class FetchError(ConsoleError):
    """Config fetch failure, delivered to every coalesced caller."""


def extract_error_message(data: Any, fallback: str) -> str:
    """Pick the upstream `error` / `message` field of a JSON error body."""
    if isinstance(data, dict):
        for field in ("error", "message"):
            value = data.get(field)
            if isinstance(value, str) and value.strip():
                return value
    return fallback
