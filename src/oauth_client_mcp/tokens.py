"""Token and state value objects.

Every record is identified by ``(client_config_id, user_id)`` and, for tokens, the
canonical scope. Fields are validated once at construction; instances are frozen.
Mapping keys match the storage row shape returned by ``to_dict()``.
"""

from __future__ import annotations

import hmac
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any, TypeVar

from .errors import invalid_field, missing_field
from .scope import ScopeSet

T = TypeVar("T", bound="_Record")


def _require_non_empty_str(name: str, value: object) -> None:
    if not isinstance(value, str) or not value:
        raise invalid_field(f"{name} needs to be a non-empty string")


def _require_int(name: str, value: object, *, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        qualifier = "positive" if minimum > 0 else "non-negative"
        raise invalid_field(f"{name} should be {qualifier} integer")


def _coerce_scope(record: object, value: object) -> None:
    if isinstance(value, ScopeSet):
        return
    # Raises InvalidScope for anything that is not a valid (or empty) scope string.
    object.__setattr__(record, "scope", ScopeSet.parse(value, allow_empty=True))


@dataclass(frozen=True, slots=True)
class _Record:
    client_config_id: str
    user_id: str
    scope: ScopeSet
    issue_time: int

    def _validate_identity(self) -> None:
        _require_non_empty_str("client_config_id", self.client_config_id)
        _require_non_empty_str("user_id", self.user_id)
        _coerce_scope(self, self.scope)
        _require_int("issue_time", self.issue_time, minimum=1)

    @classmethod
    def from_mapping(cls: type[T], data: Mapping[str, Any]) -> T:
        """Construct from a field mapping (e.g. a storage row).

        Raises:
            MissingField: If a required key is absent.
            InvalidField / InvalidScope: If a value fails validation.
        """
        names = [f.name for f in fields(cls)]
        for key in names:
            if key not in data:
                raise missing_field(key)
        return cls(**{key: data[key] for key in names})

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = str(value) if isinstance(value, ScopeSet) else value
        return out

    def has_scope(self, scope: str) -> bool:
        """Return True if ``scope`` canonicalizes to this record's scope."""
        return self.scope.equals(ScopeSet.parse(scope))


@dataclass(frozen=True, slots=True)
class AccessToken(_Record):
    """A bearer access token; expires at ``issue_time + expires_in``."""

    access_token: str
    token_type: str
    expires_in: int

    def __post_init__(self) -> None:
        self._validate_identity()
        _require_non_empty_str("access_token", self.access_token)
        _require_non_empty_str("token_type", self.token_type)
        _require_int("expires_in", self.expires_in, minimum=0)

    @property
    def expires_at(self) -> int:
        return self.issue_time + self.expires_in

    def is_expired(self, now: int) -> bool:
        # The expiry instant itself already counts as expired.
        return self.expires_at <= now


@dataclass(frozen=True, slots=True)
class RefreshToken(_Record):
    """A refresh token; valid until the authorization server rejects it."""

    refresh_token: str

    def __post_init__(self) -> None:
        self._validate_identity()
        _require_non_empty_str("refresh_token", self.refresh_token)


@dataclass(frozen=True, slots=True)
class AuthState(_Record):
    """Pending authorization-code request bound to one user (CSRF state)."""

    state: str

    def __post_init__(self) -> None:
        self._validate_identity()
        _require_non_empty_str("state", self.state)

    def matches(self, state: object) -> bool:
        if not isinstance(state, str):
            return False
        return hmac.compare_digest(self.state.encode("utf-8"), state.encode("utf-8"))


@dataclass(frozen=True, slots=True)
class Context:
    """Which credential a caller wants: a user and the requested scope.

    Build from a raw scope string with ``Context.create``.
    """

    user_id: str
    scope: ScopeSet = ScopeSet.empty()

    def __post_init__(self) -> None:
        _require_non_empty_str("user_id", self.user_id)
        if not isinstance(self.scope, ScopeSet):
            raise invalid_field("scope needs to be a ScopeSet; use Context.create for raw scope strings")

    @classmethod
    def create(cls, user_id: str, scope: ScopeSet | str | None = None) -> Context:
        """Build a context from a raw scope; None or "" mean no scope.

        Raises:
            InvalidScope: If ``scope`` is not a valid scope string.
            InvalidField: If ``user_id`` is empty.
        """
        if scope is None:
            scope = ScopeSet.empty()
        elif not isinstance(scope, ScopeSet):
            scope = ScopeSet.parse(scope, allow_empty=True)
        return cls(user_id=user_id, scope=scope)
