"""Safe error types and serialization helpers.

Errors surfaced to callers and agents must be non-secret and stable: no token values,
client secrets or authorization codes ever appear in a message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class SafeError(Exception):
    """An error safe to expose to callers and agents."""

    code: str
    message: str
    hint: str | None = None
    status_code: int | None = None


class InvalidArgument(SafeError):
    """Malformed input rejected at construction or validation time."""


class InvalidScope(InvalidArgument):
    """A scope string does not match the scope-token grammar."""


class InvalidField(InvalidArgument):
    """A token/state field failed its own validation."""


class MissingField(InvalidArgument):
    """A required key is absent from a token/state field mapping."""


class InvalidState(InvalidArgument):
    """A caller-supplied CSRF state value is not a non-empty string."""


class StorageError(SafeError):
    """A persistence operation failed."""


class ExchangeFailure(SafeError):
    """The token endpoint did not yield a usable token response."""


class CallbackError(SafeError):
    """The authorization callback could not be completed."""


class ConfigError(SafeError):
    """Host configuration is missing or invalid."""


def invalid_scope(scope: object) -> InvalidScope:
    if not isinstance(scope, str):
        return InvalidScope(code="InvalidScope", message="scope needs to be a string")
    return InvalidScope(code="InvalidScope", message=f"invalid scope '{scope}'")


def invalid_field(message: str) -> InvalidField:
    return InvalidField(code="InvalidField", message=message)


def missing_field(key: str) -> MissingField:
    return MissingField(code="MissingField", message=f"missing field '{key}'")


def storage_error(message: str) -> StorageError:
    return StorageError(code="Storage", message=message)


def exchange_failure(message: str, *, status_code: int | None = None, code: str = "Exchange") -> ExchangeFailure:
    """Return a safe ExchangeFailure; the response body is never included."""
    return ExchangeFailure(code=code, message=message, status_code=status_code)


def config_error(message: str) -> ConfigError:
    return ConfigError(code="Config", message=message)


def safe_error_to_result(err: SafeError) -> dict[str, Any]:
    """Convert a SafeError into the standard tool envelope."""
    return to_error_result(code=err.code, message=err.message, hint=err.hint)


def to_error_result(*, code: str, message: str, hint: str | None = None) -> dict[str, Any]:
    """Build a standard tool error envelope."""
    out: dict[str, Any] = {"ok": False, "code": code, "message": message}
    if hint:
        out["hint"] = hint
    return out


def internal_error(message: str = "Internal error") -> dict[str, Any]:
    """Error for unexpected failures."""
    return to_error_result(code="Internal", message=message)
