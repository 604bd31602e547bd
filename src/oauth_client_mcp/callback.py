"""Authorization-code callback handling.

Completes the flow started by ``CredentialManager.get_authorize_uri``: the pending state
is consumed (deleted) on every callback, compared against the returned ``state``
parameter, and the code is redeemed for tokens.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping

from .errors import CallbackError, ExchangeFailure
from .exchanger import TokenExchanger
from .scope import ScopeSet
from .storage import TokenStorage
from .tokens import AccessToken, RefreshToken

logger = logging.getLogger(__name__)


def _callback_error(
    message: str, *, code: str = "Callback", hint: str | None = None, status_code: int | None = None
) -> CallbackError:
    return CallbackError(code=code, message=message, hint=hint, status_code=status_code)


class AuthorizationCallback:
    """Validates redirect-URI callbacks and stores the resulting tokens."""

    def __init__(
        self,
        *,
        client_config_id: str,
        storage: TokenStorage,
        exchanger: TokenExchanger,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client_config_id = client_config_id
        self._storage = storage
        self._exchanger = exchanger
        self._clock = clock

    async def handle(self, user_id: str, query: Mapping[str, str]) -> AccessToken:
        """Handle the query parameters the authorization server redirected back with.

        Raises:
            CallbackError: If no authorization is pending, the server reported an error,
                the state does not match, or the code could not be redeemed.
            StorageError: If tokens cannot be persisted.
        """
        pending = self._storage.get_state_for_user(self._client_config_id, user_id)
        if pending is None:
            raise _callback_error("No pending authorization for this user", hint="Request a new authorize URI")
        # The state is single use whatever the outcome below.
        self._storage.delete_state_for_user(self._client_config_id, user_id)

        error = query.get("error")
        if error:
            raise _callback_error(
                f"Authorization was not granted ({error})",
                code="AuthorizationDenied",
                hint=query.get("error_description") or None,
            )

        code = query.get("code")
        state = query.get("state")
        if not code or not state:
            raise _callback_error("Callback is missing code or state")
        if not pending.matches(state):
            logger.warning("State mismatch on callback for client config %s", self._client_config_id)
            raise _callback_error("State does not match the pending authorization")

        try:
            response = await self._exchanger.exchange_authorization_code(code)
        except ExchangeFailure as exc:
            raise _callback_error("Authorization code could not be redeemed", status_code=exc.status_code) from exc

        scope = ScopeSet.parse(response.scope) if response.scope is not None else pending.scope
        now = int(self._clock())
        access_token = AccessToken(
            client_config_id=self._client_config_id,
            user_id=user_id,
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
                    user_id=user_id,
                    scope=scope,
                    refresh_token=response.refresh_token,
                    issue_time=now,
                )
            )
        logger.info("Authorization completed for client config %s", self._client_config_id)
        return access_token
