"""Tool registry and dispatch layer.

This module:
- defines the allow-listed tools (public contract surface)
- builds a per-server runtime from host-provided config
- creates a correlation_id per operation attempt
- rejects credential-like inputs before executing any tool implementation

Tool results identify tokens by fingerprint only; token values never reach the agent.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs, urlsplit

from .audit import AuditLogger, build_event, new_correlation_id
from .callback import AuthorizationCallback
from .config import AppConfig, load_config_from_env
from .errors import CallbackError, ConfigError, InvalidArgument, SafeError, internal_error, safe_error_to_result
from .exchanger import HttpTokenExchanger
from .manager import CredentialManager
from .safety import token_fingerprint, validate_no_secrets
from .sqlite_storage import SqliteStorage
from .storage import MemoryStorage, TokenStorage
from .tokens import AccessToken, Context

logger = logging.getLogger(__name__)

_USER_AND_SCOPE_PROPERTIES: dict[str, Any] = {
    "user_id": {"type": "string", "minLength": 1},
    "scope": {"type": "string"},
}

TOOL_METADATA: dict[str, dict[str, Any]] = {
    "get_authorize_uri": {
        "description": "Start an authorization-code flow for a user and return the URI to open in a browser.",
        "inputSchema": {
            "type": "object",
            "required": ["user_id"],
            "properties": dict(_USER_AND_SCOPE_PROPERTIES),
            "additionalProperties": False,
        },
    },
    "complete_authorization": {
        "description": "Finish the authorization-code flow from the URL the browser was redirected to.",
        "inputSchema": {
            "type": "object",
            "required": ["user_id", "callback_url"],
            "properties": {
                "user_id": {"type": "string", "minLength": 1},
                "callback_url": {"type": "string", "minLength": 1},
            },
            "additionalProperties": False,
        },
    },
    "get_access_token_status": {
        "description": "Report whether a usable access token exists for a user and scope (refreshing if needed).",
        "inputSchema": {
            "type": "object",
            "required": ["user_id"],
            "properties": dict(_USER_AND_SCOPE_PROPERTIES),
            "additionalProperties": False,
        },
    },
    "delete_access_token": {
        "description": "Delete the cached access token for a user and scope.",
        "inputSchema": {
            "type": "object",
            "required": ["user_id"],
            "properties": {
                **_USER_AND_SCOPE_PROPERTIES,
                "refresh_before_delete": {"type": "boolean", "default": False},
            },
            "additionalProperties": False,
        },
    },
    "delete_refresh_token": {
        "description": "Delete the stored refresh token for a user and scope.",
        "inputSchema": {
            "type": "object",
            "required": ["user_id"],
            "properties": dict(_USER_AND_SCOPE_PROPERTIES),
            "additionalProperties": False,
        },
    },
}


@dataclass(frozen=True, slots=True)
class Runtime:
    """Per-server runtime dependencies shared across tool calls."""

    config: AppConfig
    audit: AuditLogger
    storage: TokenStorage
    manager: CredentialManager
    callback: AuthorizationCallback


_RUNTIME: Runtime | None = None


_JSON_TYPES: dict[str, type] = {"string": str, "boolean": bool}


def validate_tool_arguments(tool_name: str, arguments: dict[str, Any]) -> None:
    """Check arguments against the tool's declared input schema.

    Covers the subset the schemas above use: required fields, additionalProperties=false,
    string/boolean types and string minLength.
    """
    metadata = TOOL_METADATA.get(tool_name)
    if metadata is None:
        raise SafeError(code="UserInput", message="Unknown tool")
    schema = metadata["inputSchema"]
    props: dict[str, Any] = schema["properties"]

    missing = [k for k in schema.get("required", []) if k not in arguments]
    if missing:
        raise SafeError(code="UserInput", message=f"Missing required field: {missing[0]}")
    if schema.get("additionalProperties", True) is False and any(k not in props for k in arguments):
        raise SafeError(code="UserInput", message="Unexpected fields are not allowed")

    for key, value in arguments.items():
        prop = props.get(key, {})
        expected = prop.get("type")
        if expected in _JSON_TYPES and not isinstance(value, _JSON_TYPES[expected]):
            raise SafeError(code="UserInput", message=f"Field '{key}' must be a {expected}")
        min_len = prop.get("minLength")
        if isinstance(value, str) and isinstance(min_len, int) and len(value) < min_len:
            raise SafeError(code="UserInput", message=f"Field '{key}' must be at least {min_len} characters")


def build_runtime(config: AppConfig) -> Runtime:
    """Wire storage, token endpoint client, manager and callback for ``config``."""
    audit = AuditLogger(
        sink_path=config.audit_log_path,
        max_bytes=config.audit_max_bytes,
        max_backups=config.audit_max_backups,
    )
    storage: TokenStorage = SqliteStorage(config.storage_path) if config.storage_path else MemoryStorage()
    exchanger = HttpTokenExchanger(client=config.client, limits=config.limits)
    manager = CredentialManager(
        client_config_id=config.client_config_id,
        client_config=config.client,
        storage=storage,
        exchanger=exchanger,
    )
    callback = AuthorizationCallback(client_config_id=config.client_config_id, storage=storage, exchanger=exchanger)
    return Runtime(config=config, audit=audit, storage=storage, manager=manager, callback=callback)


def initialize_runtime_from_env() -> Runtime:
    """Initialize and cache runtime from environment.

    Called at server startup (fail-fast), and can also be used lazily.
    """
    global _RUNTIME  # pylint: disable=global-statement
    if _RUNTIME is None:
        _RUNTIME = build_runtime(load_config_from_env())
    return _RUNTIME


def _context(arguments: dict[str, Any]) -> Context:
    return Context.create(arguments["user_id"], arguments.get("scope"))


def _token_summary(token: AccessToken) -> dict[str, Any]:
    return {
        "token_type": token.token_type,
        "scope": str(token.scope),
        "issue_time": token.issue_time,
        "expires_at": token.expires_at,
        "fingerprint": token_fingerprint(token.access_token),
    }


def _callback_query(runtime: Runtime, callback_url: str) -> dict[str, str]:
    parts = urlsplit(callback_url)
    redirect_uri = runtime.config.client.redirect_uri
    if redirect_uri:
        expected = urlsplit(redirect_uri)
        if (parts.scheme, parts.netloc, parts.path) != (expected.scheme, expected.netloc, expected.path):
            raise SafeError(code="UserInput", message="callback_url does not match the configured redirect URI")
    # First value wins for repeated parameters.
    return {k: v[0] for k, v in parse_qs(parts.query).items() if v}


async def _tool_get_authorize_uri(runtime: Runtime, arguments: dict[str, Any]) -> dict[str, Any]:
    uri = runtime.manager.get_authorize_uri(_context(arguments))
    return {"authorize_uri": uri}


async def _tool_complete_authorization(runtime: Runtime, arguments: dict[str, Any]) -> dict[str, Any]:
    query = _callback_query(runtime, arguments["callback_url"])
    token = await runtime.callback.handle(arguments["user_id"], query)
    return {"token": _token_summary(token)}


async def _tool_get_access_token_status(runtime: Runtime, arguments: dict[str, Any]) -> dict[str, Any]:
    token = await runtime.manager.get_access_token(_context(arguments))
    if token is None:
        return {"available": False, "hint": "Authorization required; call get_authorize_uri"}
    return {"available": True, "token": _token_summary(token)}


async def _tool_delete_access_token(runtime: Runtime, arguments: dict[str, Any]) -> dict[str, Any]:
    context = _context(arguments)
    if arguments.get("refresh_before_delete", False):
        await runtime.manager.delete_access_token(context)
    else:
        runtime.manager.discard_access_token(context)
    return {"deleted": True}


async def _tool_delete_refresh_token(runtime: Runtime, arguments: dict[str, Any]) -> dict[str, Any]:
    runtime.manager.delete_refresh_token(_context(arguments))
    return {"deleted": True}


_TOOL_FUNCS: dict[str, Any] = {
    "get_authorize_uri": _tool_get_authorize_uri,
    "complete_authorization": _tool_complete_authorization,
    "get_access_token_status": _tool_get_access_token_status,
    "delete_access_token": _tool_delete_access_token,
    "delete_refresh_token": _tool_delete_refresh_token,
}


def _outcome_for(err: SafeError) -> str:
    if isinstance(err, (InvalidArgument, ConfigError, CallbackError)) or err.code == "UserInput":
        return "denied"
    return "failed"


def _audit(
    runtime: Runtime | None,
    start: float | None,
    *,
    correlation_id: str,
    operation: str,
    outcome: str,
    reason: str | None = None,
    fingerprint: str | None = None,
) -> None:
    if runtime is None or start is None:
        # Runtime could not be built (config failure); the event still reaches stderr.
        AuditLogger(sink_path=None).write_event(
            build_event(
                correlation_id=correlation_id,
                operation=operation,
                client_config_id="<unknown>",
                outcome=outcome,
                reason=reason,
            )
        )
        return
    runtime.audit.write_event(
        build_event(
            correlation_id=correlation_id,
            operation=operation,
            client_config_id=runtime.config.client_config_id,
            outcome=outcome,
            reason=reason,
            duration_ms=runtime.audit.measure_duration_ms(start),
            token_fingerprint=fingerprint,
        )
    )


async def dispatch_tool(name: str, arguments: dict[str, Any]) -> dict[str, Any]:
    """Run one tool call and return its result envelope.

    Every call, successful or not, gets a fresh correlation_id that appears in both
    the envelope and the audit event.
    """
    correlation_id = new_correlation_id()
    runtime: Runtime | None = None
    start: float | None = None

    try:
        runtime = initialize_runtime_from_env()
        start = runtime.audit.measure_start()

        validate_no_secrets(arguments)
        func = _TOOL_FUNCS.get(name)
        if func is None:
            raise SafeError(
                code="UserInput",
                message=f"Unknown tool: {name}",
                hint=f"Available tools: {', '.join(sorted(TOOL_METADATA))}",
            )
        validate_tool_arguments(name, arguments)

        result = await func(runtime, arguments)
    except SafeError as err:
        _audit(
            runtime,
            start,
            correlation_id=correlation_id,
            operation=name,
            outcome=_outcome_for(err),
            reason=err.message,
        )
        return {**safe_error_to_result(err), "correlation_id": correlation_id}
    except Exception:  # pylint: disable=broad-exception-caught  # pragma: no cover
        logger.exception("Unexpected failure in tool %s", name)
        _audit(runtime, start, correlation_id=correlation_id, operation=name, outcome="failed", reason="Internal error")
        return {**internal_error("Internal error"), "correlation_id": correlation_id}

    token = result.get("token")
    _audit(
        runtime,
        start,
        correlation_id=correlation_id,
        operation=name,
        outcome="succeeded",
        fingerprint=token["fingerprint"] if token else None,
    )
    return {"ok": True, "correlation_id": correlation_id, **result}
