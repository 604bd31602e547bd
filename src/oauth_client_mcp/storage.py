"""Token storage contract and the in-memory backend.

Backends own persisted copies of tokens and state. A store for an existing key
overwrites it; deletes of absent records are no-ops. Failures raise StorageError.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .scope import ScopeSet
from .tokens import AccessToken, AuthState, RefreshToken

logger = logging.getLogger(__name__)

TokenKey = tuple[str, str, str]
UserKey = tuple[str, str]


class TokenStorage(Protocol):
    """Capability interface consumed by the credential manager and callback handler."""

    def get_access_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> AccessToken | None: ...

    def store_access_token(self, token: AccessToken) -> None: ...

    def delete_access_token(self, token: AccessToken) -> None: ...

    def get_refresh_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> RefreshToken | None: ...

    def store_refresh_token(self, token: RefreshToken) -> None: ...

    def delete_refresh_token(self, token: RefreshToken) -> None: ...

    def store_state(self, state: AuthState) -> None: ...

    def delete_state_for_user(self, client_config_id: str, user_id: str) -> None: ...

    def get_state_for_user(self, client_config_id: str, user_id: str) -> AuthState | None: ...


def _token_key(client_config_id: str, user_id: str, scope: ScopeSet) -> TokenKey:
    return (client_config_id, user_id, scope.value)


class MemoryStorage:
    """Process-local storage; contents are lost on exit."""

    def __init__(self) -> None:
        self._access: dict[TokenKey, AccessToken] = {}
        self._refresh: dict[TokenKey, RefreshToken] = {}
        self._states: dict[UserKey, AuthState] = {}

    def get_access_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> AccessToken | None:
        return self._access.get(_token_key(client_config_id, user_id, scope))

    def store_access_token(self, token: AccessToken) -> None:
        self._access[_token_key(token.client_config_id, token.user_id, token.scope)] = token

    def delete_access_token(self, token: AccessToken) -> None:
        self._access.pop(_token_key(token.client_config_id, token.user_id, token.scope), None)

    def get_refresh_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> RefreshToken | None:
        return self._refresh.get(_token_key(client_config_id, user_id, scope))

    def store_refresh_token(self, token: RefreshToken) -> None:
        self._refresh[_token_key(token.client_config_id, token.user_id, token.scope)] = token

    def delete_refresh_token(self, token: RefreshToken) -> None:
        self._refresh.pop(_token_key(token.client_config_id, token.user_id, token.scope), None)

    def store_state(self, state: AuthState) -> None:
        self._states[(state.client_config_id, state.user_id)] = state

    def delete_state_for_user(self, client_config_id: str, user_id: str) -> None:
        if self._states.pop((client_config_id, user_id), None) is not None:
            logger.debug("Discarded pending authorization state for client config %s", client_config_id)

    def get_state_for_user(self, client_config_id: str, user_id: str) -> AuthState | None:
        return self._states.get((client_config_id, user_id))
