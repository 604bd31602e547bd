"""Token endpoint client.

Provides:
- the TokenExchanger capability consumed by the credential manager
- an httpx implementation with no redirects, finite timeouts and no retries
- safe error translation: every failure is a single ExchangeFailure
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from .config import ClientConfig, LimitsConfig
from .errors import exchange_failure
from .safety import redact_text

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TokenResponse:
    """A successful token endpoint response (RFC 6749 section 5.1)."""

    access_token: str
    token_type: str
    expires_in: int
    scope: str | None = None
    refresh_token: str | None = None

    @classmethod
    def from_json(cls, payload: object, *, default_expires_in: int) -> TokenResponse:
        """Validate a decoded JSON body.

        Raises:
            ExchangeFailure: If required fields are missing or malformed.
        """
        if not isinstance(payload, Mapping):
            raise exchange_failure("Token response is not a JSON object")

        access_token = payload.get("access_token")
        token_type = payload.get("token_type")
        if not isinstance(access_token, str) or not access_token:
            raise exchange_failure("Token response missing access_token")
        if not isinstance(token_type, str) or not token_type:
            raise exchange_failure("Token response missing token_type")

        expires_in = payload.get("expires_in", default_expires_in)
        # Some servers send expires_in as a numeric string or an integral float.
        if isinstance(expires_in, str) and expires_in.isdigit():
            expires_in = int(expires_in)
        elif isinstance(expires_in, float) and expires_in.is_integer():
            expires_in = int(expires_in)
        if isinstance(expires_in, bool) or not isinstance(expires_in, int) or expires_in < 0:
            raise exchange_failure("Token response has invalid expires_in")

        scope = payload.get("scope")
        if scope is not None and not isinstance(scope, str):
            raise exchange_failure("Token response has invalid scope")
        refresh_token = payload.get("refresh_token")
        if refresh_token is not None and (not isinstance(refresh_token, str) or not refresh_token):
            raise exchange_failure("Token response has invalid refresh_token")

        return cls(
            access_token=access_token,
            token_type=token_type,
            expires_in=expires_in,
            scope=scope or None,
            refresh_token=refresh_token,
        )


class TokenExchanger(Protocol):
    """Redeems grants at the token endpoint; failures raise ExchangeFailure."""

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse: ...

    async def exchange_authorization_code(self, code: str) -> TokenResponse: ...


class HttpTokenExchanger:
    """Token endpoint client for a single registered client."""

    def __init__(
        self,
        *,
        client: ClientConfig,
        limits: LimitsConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Create a token endpoint client.

        Args:
            client: Client registration (endpoint, credentials).
            limits: Timeouts.
            transport: Optional httpx transport for tests.
        """
        self._client = client
        self._limits = limits
        self._transport = transport

    def _auth_and_form(self, form: dict[str, str]) -> tuple[httpx.BasicAuth | None, dict[str, str]]:
        secret = self._client.client_secret
        if secret is None:
            return None, {**form, "client_id": self._client.client_id}
        if self._client.credentials_in_request_body:
            return None, {**form, "client_id": self._client.client_id, "client_secret": secret}
        return httpx.BasicAuth(self._client.client_id, secret), form

    async def _request_token(self, form: dict[str, str]) -> TokenResponse:
        auth, data = self._auth_and_form(form)
        timeout = httpx.Timeout(
            timeout=self._limits.total_timeout_s,
            connect=self._limits.connect_timeout_s,
            read=self._limits.read_timeout_s,
        )

        try:
            async with httpx.AsyncClient(
                follow_redirects=False,
                timeout=timeout,
                transport=self._transport,
            ) as http:
                resp = await http.post(
                    self._client.token_endpoint,
                    data=data,
                    auth=auth,
                    headers={"Accept": "application/json"},
                )
        except httpx.HTTPError as exc:
            logger.warning("Token endpoint unreachable: %s", type(exc).__name__)
            raise exchange_failure("Token endpoint request failed", code="Network") from exc

        if not resp.is_success:
            error_code = _oauth_error_code(resp)
            logger.warning(
                "Token endpoint rejected %s grant: status=%s error=%s",
                form["grant_type"],
                resp.status_code,
                error_code,
            )
            raise exchange_failure("Token endpoint rejected the grant", status_code=resp.status_code)

        try:
            payload: Any = resp.json()
        except ValueError as exc:  # JSONDecodeError or UnicodeDecodeError
            raise exchange_failure("Token endpoint returned invalid JSON") from exc

        return TokenResponse.from_json(payload, default_expires_in=self._client.default_expires_in)

    async def exchange_refresh_token(self, refresh_token: str) -> TokenResponse:
        """Redeem a refresh token for a new access token."""
        return await self._request_token({"grant_type": "refresh_token", "refresh_token": refresh_token})

    async def exchange_authorization_code(self, code: str) -> TokenResponse:
        """Redeem an authorization code received on the redirect URI."""
        form = {"grant_type": "authorization_code", "code": code}
        if self._client.redirect_uri:
            form["redirect_uri"] = self._client.redirect_uri
        return await self._request_token(form)


def _oauth_error_code(resp: httpx.Response) -> str | None:
    """Return the RFC 6749 ``error`` code of an error response, if well-formed."""
    try:
        payload = resp.json()
    except ValueError:
        return None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return redact_text(payload["error"])
    return None
