"""Token endpoint client tests."""

from __future__ import annotations

import base64
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from oauth_client_mcp.config import ClientConfig, LimitsConfig
from oauth_client_mcp.errors import ExchangeFailure
from oauth_client_mcp.exchanger import HttpTokenExchanger, TokenResponse


def _client(**overrides: Any) -> ClientConfig:
    values: dict[str, Any] = {
        "client_id": "my-client",
        "authorize_endpoint": "https://auth.example.org/authorize",
        "token_endpoint": "https://auth.example.org/token",
        "client_secret": "s3cret",
        "redirect_uri": "https://app.example.org/callback",
    }
    values.update(overrides)
    return ClientConfig(**values)


def _form(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode("utf-8")).items()}


@pytest.mark.asyncio
async def test_refresh_grant_uses_basic_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={"access_token": "at-1", "token_type": "Bearer", "expires_in": 3600, "refresh_token": "rt-2"},
        )

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    resp = await exchanger.exchange_refresh_token("rt-1")

    assert resp == TokenResponse(access_token="at-1", token_type="Bearer", expires_in=3600, refresh_token="rt-2")
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == "https://auth.example.org/token"
    assert _form(request) == {"grant_type": "refresh_token", "refresh_token": "rt-1"}
    expected = base64.b64encode(b"my-client:s3cret").decode("ascii")
    assert request.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_credentials_in_request_body() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "at-1", "token_type": "Bearer"})

    exchanger = HttpTokenExchanger(
        client=_client(credentials_in_request_body=True),
        limits=LimitsConfig(),
        transport=httpx.MockTransport(handler),
    )

    _ = await exchanger.exchange_refresh_token("rt-1")

    assert "Authorization" not in seen[0].headers
    assert _form(seen[0])["client_id"] == "my-client"
    assert _form(seen[0])["client_secret"] == "s3cret"


@pytest.mark.asyncio
async def test_public_client_sends_client_id_only() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "at-1", "token_type": "Bearer"})

    exchanger = HttpTokenExchanger(
        client=_client(client_secret=None),
        limits=LimitsConfig(),
        transport=httpx.MockTransport(handler),
    )

    _ = await exchanger.exchange_refresh_token("rt-1")

    assert "Authorization" not in seen[0].headers
    assert _form(seen[0]) == {"grant_type": "refresh_token", "refresh_token": "rt-1", "client_id": "my-client"}


@pytest.mark.asyncio
async def test_authorization_code_grant_sends_redirect_uri() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "at-1", "token_type": "Bearer", "scope": "read"})

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    resp = await exchanger.exchange_authorization_code("code-1")

    assert resp.scope == "read"
    assert _form(seen[0]) == {
        "grant_type": "authorization_code",
        "code": "code-1",
        "redirect_uri": "https://app.example.org/callback",
    }


@pytest.mark.asyncio
async def test_missing_expires_in_uses_configured_default() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"access_token": "at-1", "token_type": "Bearer"})

    exchanger = HttpTokenExchanger(
        client=_client(default_expires_in=900),
        limits=LimitsConfig(),
        transport=httpx.MockTransport(handler),
    )

    resp = await exchanger.exchange_refresh_token("rt-1")

    assert resp.expires_in == 900
    assert resp.refresh_token is None
    assert resp.scope is None


@pytest.mark.asyncio
async def test_error_status_raises_exchange_failure_without_body() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "rt-1 was revoked"})

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(ExchangeFailure) as exc:
        _ = await exchanger.exchange_refresh_token("rt-1")

    assert exc.value.code == "Exchange"
    assert exc.value.status_code == 400
    assert "rt-1" not in exc.value.message


@pytest.mark.asyncio
async def test_transport_error_raises_network_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(ExchangeFailure) as exc:
        _ = await exchanger.exchange_refresh_token("rt-1")

    assert exc.value.code == "Network"


@pytest.mark.asyncio
async def test_redirects_are_not_followed() -> None:
    calls = {"n": 0}

    def handler(_request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(302, headers={"Location": "https://evil.example.org/token"})

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(ExchangeFailure) as exc:
        _ = await exchanger.exchange_refresh_token("rt-1")

    assert calls["n"] == 1
    assert exc.value.code == "Exchange"
    assert exc.value.status_code == 302


@pytest.mark.asyncio
async def test_invalid_json_raises_exchange_failure() -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>not json</html>")

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(ExchangeFailure):
        _ = await exchanger.exchange_refresh_token("rt-1")


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [200, 400])
async def test_non_utf8_body_raises_exchange_failure(status: int) -> None:
    def handler(_request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, content=b"\x80\x81garbage", headers={"Content-Type": "application/json"})

    exchanger = HttpTokenExchanger(client=_client(), limits=LimitsConfig(), transport=httpx.MockTransport(handler))

    with pytest.raises(ExchangeFailure) as exc:
        _ = await exchanger.exchange_refresh_token("rt-1")

    assert exc.value.status_code == (400 if status == 400 else None)


@pytest.mark.parametrize(
    "payload",
    [
        ["not", "an", "object"],
        {"token_type": "Bearer"},
        {"access_token": "at-1"},
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": -1},
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": "soon"},
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": 3600.5},
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": -60.0},
        {"access_token": "at-1", "token_type": "Bearer", "scope": ["read"]},
        {"access_token": "at-1", "token_type": "Bearer", "refresh_token": ""},
    ],
)
def test_token_response_validation(payload: Any) -> None:
    with pytest.raises(ExchangeFailure):
        _ = TokenResponse.from_json(payload, default_expires_in=3600)


def test_token_response_accepts_numeric_string_expires_in_and_drops_empty_scope() -> None:
    resp = TokenResponse.from_json(
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": "120", "scope": ""},
        default_expires_in=3600,
    )
    assert resp.expires_in == 120
    assert resp.scope is None


def test_token_response_accepts_integral_float_expires_in() -> None:
    resp = TokenResponse.from_json(
        {"access_token": "at-1", "token_type": "Bearer", "expires_in": 3600.0},
        default_expires_in=60,
    )
    assert resp.expires_in == 3600
    assert isinstance(resp.expires_in, int)
