"""Credential lifecycle for one registered OAuth 2.0 client.

The manager keeps no state between calls; everything lives in the TokenStorage backend.
Expiry and a rejected refresh are not errors: both resolve to ``None`` ("the user must
authorize again"). Validation and storage errors propagate to the caller unchanged.
"""

from __future__ import annotations

import logging
import secrets
import time
from collections.abc import Callable
from urllib.parse import urlencode

from .config import ClientConfig
from .errors import ExchangeFailure, InvalidState, invalid_field
from .exchanger import TokenExchanger, TokenResponse
from .scope import ScopeSet
from .storage import TokenStorage
from .tokens import AccessToken, AuthState, Context, RefreshToken

logger = logging.getLogger(__name__)

# Bytes of randomness in a generated CSRF state value (hex encoded: 16 characters).
RANDOM_LENGTH = 8


class CredentialManager:
    """Decides whether a cached access token can be used and refreshes it when needed."""

    def __init__(
        self,
        *,
        client_config_id: str,
        client_config: ClientConfig,
        storage: TokenStorage,
        exchanger: TokenExchanger,
        clock: Callable[[], float] = time.time,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
    ) -> None:
        """Bind the manager to one client registration.

        Args:
            client_config_id: Identifier that partitions storage between client registrations.
            client_config: Client id, redirect URI and endpoints.
            storage: Token/state backend.
            exchanger: Token endpoint client used for refreshes.
            clock: Returns the current Unix time in seconds.
            random_bytes: Returns n random bytes; used for CSRF state values.
        """
        if not isinstance(client_config_id, str) or not client_config_id:
            raise invalid_field("client_config_id needs to be a non-empty string")
        self._client_config_id = client_config_id
        self._client_config = client_config
        self._storage = storage
        self._exchanger = exchanger
        self._clock = clock
        self._random_bytes = random_bytes

    def _now(self) -> int:
        return int(self._clock())

    def get_refresh_token(self, context: Context) -> RefreshToken | None:
        return self._storage.get_refresh_token(self._client_config_id, context.user_id, context.scope)

    async def get_access_token(self, context: Context) -> AccessToken | None:
        """Return a usable access token for ``context``, refreshing if possible.

        Returns None when no valid token exists and none can be obtained with a
        refresh token; the caller then has to run the authorization flow again.
        """
        access_token = self._storage.get_access_token(self._client_config_id, context.user_id, context.scope)
        if access_token is not None:
            if not access_token.is_expired(self._now()):
                return access_token
            self._storage.delete_access_token(access_token)
            logger.debug("Deleted expired access token for client config %s", self._client_config_id)

        refresh_token = self.get_refresh_token(context)
        if refresh_token is None:
            return None

        try:
            response = await self._exchanger.exchange_refresh_token(refresh_token.refresh_token)
        except ExchangeFailure as exc:
            # Treated as revocation; transient failures are not distinguished here.
            self._storage.delete_refresh_token(refresh_token)
            logger.info(
                "Refresh failed (%s) for client config %s; refresh token deleted",
                exc.code,
                self._client_config_id,
            )
            return None

        return self._store_refreshed(context, response)

    def _store_refreshed(self, context: Context, response: TokenResponse) -> AccessToken:
        scope = ScopeSet.parse(response.scope) if response.scope is not None else context.scope
        now = self._now()
        access_token = AccessToken(
            client_config_id=self._client_config_id,
            user_id=context.user_id,
            scope=scope,
            access_token=response.access_token,
            token_type=response.token_type,
            issue_time=now,
            expires_in=response.expires_in,
        )
        self._storage.store_access_token(access_token)
        if response.refresh_token is not None:
            self._storage.store_refresh_token(
                RefreshToken(
                    client_config_id=self._client_config_id,
                    user_id=context.user_id,
                    scope=scope,
                    refresh_token=response.refresh_token,
                    issue_time=now,
                )
            )
        logger.info(
            "Refreshed access token for client config %s (rotated refresh token: %s)",
            self._client_config_id,
            response.refresh_token is not None,
        )
        return access_token

    async def delete_access_token(self, context: Context) -> None:
        """Delete the access token ``get_access_token`` would return.

        This runs the full lookup, so an expired token with a usable refresh token is
        refreshed first and the fresh token is the one deleted. Use
        ``discard_access_token`` to delete without contacting the token endpoint.
        """
        access_token = await self.get_access_token(context)
        if access_token is not None:
            self._storage.delete_access_token(access_token)

    def discard_access_token(self, context: Context) -> None:
        """Delete a cached access token, if any, without refreshing."""
        access_token = self._storage.get_access_token(self._client_config_id, context.user_id, context.scope)
        if access_token is not None:
            self._storage.delete_access_token(access_token)

    def delete_refresh_token(self, context: Context) -> None:
        refresh_token = self.get_refresh_token(context)
        if refresh_token is not None:
            self._storage.delete_refresh_token(refresh_token)

    def get_authorize_uri(self, context: Context, state_value: str | None = None) -> str:
        """Issue a fresh CSRF state for the user and build the authorization request URI.

        Any earlier pending state for the same user is deleted first, so at most one
        state is live per user.

        Raises:
            InvalidState: If ``state_value`` is given but is not a non-empty string.
            StorageError: If the new state cannot be persisted.
        """
        if state_value is None:
            state_value = self._random_bytes(RANDOM_LENGTH).hex()
        elif not isinstance(state_value, str) or not state_value:
            raise InvalidState(code="InvalidState", message="state should be a non-empty string")

        self._storage.delete_state_for_user(self._client_config_id, context.user_id)
        state = AuthState(
            client_config_id=self._client_config_id,
            user_id=context.user_id,
            scope=context.scope,
            issue_time=self._now(),
            state=state_value,
        )
        self._storage.store_state(state)

        query = {
            "client_id": self._client_config.client_id,
            "response_type": "code",
            "state": state.state,
        }
        if not context.scope.is_empty():
            query["scope"] = str(context.scope)
        if self._client_config.redirect_uri:
            query["redirect_uri"] = self._client_config.redirect_uri

        endpoint = self._client_config.authorize_endpoint
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(query)}"
