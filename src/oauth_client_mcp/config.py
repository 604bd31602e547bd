"""Configuration loading for oauth-client-mcp.

Configuration is supplied by the host environment (e.g., MCP client config), not by the agent.
The client secret is treated as a secret and must never be emitted to agents, logs, or audit
reasons.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

from .errors import config_error

_LOOPBACK_HOSTS = {"localhost", "127.0.0.1", "::1"}


@dataclass(frozen=True, slots=True)
class ClientConfig:
    """Static registration of this client at one authorization server."""

    client_id: str
    authorize_endpoint: str
    token_endpoint: str
    client_secret: str | None = None
    redirect_uri: str | None = None
    credentials_in_request_body: bool = False
    default_expires_in: int = 3600


@dataclass(frozen=True, slots=True)
class LimitsConfig:
    """Token endpoint timeouts."""

    total_timeout_s: float = 30.0
    connect_timeout_s: float = 5.0
    read_timeout_s: float = 20.0


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Client binding plus host-controlled storage/audit settings."""

    client_config_id: str
    client: ClientConfig

    storage_path: Path | None
    audit_log_path: Path | None
    audit_max_bytes: int
    audit_max_backups: int
    limits: LimitsConfig


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    normalized = value.strip().lower()
    return normalized in {"1", "true", "yes", "on"}


def _validate_endpoint(name: str, value: str) -> str:
    parts = urlsplit(value)
    if not parts.netloc or parts.fragment:
        raise config_error(f"{name} must be an absolute URL without fragment")
    if parts.scheme == "https":
        return value
    if parts.scheme == "http" and parts.hostname in _LOOPBACK_HOSTS:
        return value
    raise config_error(f"{name} must use https (http is only allowed for loopback hosts)")


def _parse_absolute_path(name: str, value: str | None) -> Path | None:
    if not value:
        return None
    p = Path(value)
    if not p.is_absolute():
        raise config_error(f"{name} must be an absolute path when set")
    return p


def load_config_from_env() -> AppConfig:
    """Load and validate configuration from environment variables.

    Raises:
        ConfigError: If configuration is missing/invalid.
    """
    client_id = os.getenv("OAUTH_CLIENT_ID")
    authorize_endpoint = os.getenv("OAUTH_AUTHORIZE_ENDPOINT")
    token_endpoint = os.getenv("OAUTH_TOKEN_ENDPOINT")

    if not client_id or not authorize_endpoint or not token_endpoint:
        raise config_error(
            "Missing required configuration (OAUTH_CLIENT_ID, OAUTH_AUTHORIZE_ENDPOINT, OAUTH_TOKEN_ENDPOINT)"
        )

    redirect_uri = os.getenv("OAUTH_REDIRECT_URI") or None
    if redirect_uri is not None:
        _validate_endpoint("OAUTH_REDIRECT_URI", redirect_uri)

    expires_in_raw = os.getenv("OAUTH_DEFAULT_EXPIRES_IN")
    default_expires_in = 3600
    if expires_in_raw:
        try:
            default_expires_in = int(expires_in_raw)
        except ValueError as exc:
            raise config_error("OAUTH_DEFAULT_EXPIRES_IN must be an integer") from exc
        if default_expires_in < 0:
            raise config_error("OAUTH_DEFAULT_EXPIRES_IN must be non-negative")

    client = ClientConfig(
        client_id=client_id,
        authorize_endpoint=_validate_endpoint("OAUTH_AUTHORIZE_ENDPOINT", authorize_endpoint),
        token_endpoint=_validate_endpoint("OAUTH_TOKEN_ENDPOINT", token_endpoint),
        client_secret=os.getenv("OAUTH_CLIENT_SECRET") or None,
        redirect_uri=redirect_uri,
        credentials_in_request_body=_parse_bool(os.getenv("OAUTH_CREDENTIALS_IN_REQUEST_BODY")),
        default_expires_in=default_expires_in,
    )

    # Retention for the optional audit file; host-controlled, never agent-controlled.
    audit_max_bytes = 5 * 1024 * 1024
    audit_max_backups = 2

    return AppConfig(
        client_config_id=os.getenv("OAUTH_CLIENT_CONFIG_ID") or "default",
        client=client,
        storage_path=_parse_absolute_path("OAUTH_CLIENT_MCP_STORAGE_PATH", os.getenv("OAUTH_CLIENT_MCP_STORAGE_PATH")),
        audit_log_path=_parse_absolute_path(
            "OAUTH_CLIENT_MCP_AUDIT_LOG_PATH", os.getenv("OAUTH_CLIENT_MCP_AUDIT_LOG_PATH")
        ),
        audit_max_bytes=audit_max_bytes,
        audit_max_backups=audit_max_backups,
        limits=LimitsConfig(),
    )
