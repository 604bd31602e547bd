"""MCP server wiring for oauth-client-mcp.

Exposes the credential manager as tools and reports non-secret configuration as
resources.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

from mcp.server import Server
from mcp.types import Resource, TextContent, Tool

from . import __version__
from .errors import SafeError, internal_error
from .sqlite_storage import SqliteStorage
from .tools import TOOL_METADATA, dispatch_tool, initialize_runtime_from_env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)
logger = logging.getLogger(__name__)

server = Server("oauth-client-mcp")

_RESOURCES = (
    ("oauth-client-mcp://server-status", "Server Status", "Non-secret client configuration and limits"),
    ("oauth-client-mcp://capabilities", "Capabilities", "Allow-listed operations and safety constraints"),
)


def _resources() -> list[Resource]:
    return [Resource(uri=uri, name=name, description=description) for uri, name, description in _RESOURCES]


@server.list_tools()
async def list_tools() -> list[Tool]:
    """List all available tools."""
    tools = [
        Tool(name=tool_name, description=metadata["description"], inputSchema=metadata["inputSchema"])
        for tool_name, metadata in TOOL_METADATA.items()
    ]
    logger.info("Listed %s tools", len(tools))
    return tools


@server.call_tool()
async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Execute a tool and return MCP-compliant TextContent."""
    if not isinstance(arguments, dict):
        arguments = {}

    logger.info("Tool called: %s", name)

    try:
        raw_result = await dispatch_tool(name, arguments)
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("Tool %s failed: %s", name, type(exc).__name__)
        raw_result = internal_error("Tool execution failed")
    return [TextContent(type="text", text=json.dumps(raw_result, indent=2, default=str))]


@server.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return _resources()


def _capabilities() -> dict[str, Any]:
    return {
        "server": "oauth-client-mcp",
        "version": __version__,
        "allow_listed_operations": sorted(TOOL_METADATA.keys()),
        "safety": {
            "token_values_exposed": False,
            "tokens_identified_by": "sha256 fingerprint",
            "csrf_state_single_use": True,
        },
    }


def _server_status() -> dict[str, Any]:
    status: dict[str, Any] = {
        "server": "oauth-client-mcp",
        "version": __version__,
        "tool_names": sorted(TOOL_METADATA.keys()),
    }
    try:
        runtime = initialize_runtime_from_env()
    except SafeError:
        status["configured"] = False
        return status

    config = runtime.config
    status["configured"] = True
    status["client"] = {
        "client_config_id": config.client_config_id,
        "authorize_endpoint": config.client.authorize_endpoint,
        "token_endpoint": config.client.token_endpoint,
        "redirect_uri_configured": config.client.redirect_uri is not None,
        "confidential_client": config.client.client_secret is not None,
        "credentials_in_request_body": config.client.credentials_in_request_body,
    }
    status["limits"] = {
        "total_timeout_s": config.limits.total_timeout_s,
        "default_expires_in": config.client.default_expires_in,
    }
    status["storage"] = "sqlite" if isinstance(runtime.storage, SqliteStorage) else "memory"
    status["audit_file_sink"] = config.audit_log_path is not None
    return status


_RESOURCE_READERS = {
    "oauth-client-mcp://capabilities": _capabilities,
    "oauth-client-mcp://server-status": _server_status,
}


@server.read_resource()
async def read_resource(uri: Any) -> str:
    """Read resource content."""
    reader = _RESOURCE_READERS.get(str(uri))
    if reader is None:
        return json.dumps({"ok": False, "code": "NotFound", "message": "Unknown resource"}, indent=2)
    return json.dumps(reader(), indent=2)


async def run_server() -> None:
    """Run the server over stdio."""
    # Fail fast on invalid/missing host configuration.
    try:
        _ = initialize_runtime_from_env()
    except SafeError as exc:
        logger.error("Startup configuration error: %s", exc.message)
        raise

    from mcp.server.stdio import stdio_server

    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


async def test_server() -> None:
    """Lightweight self-test to ensure tool/resource listing works."""
    tools = await list_tools()
    resources = await list_resources()
    print(f"oauth-client-mcp {__version__}: {len(tools)} tools, {len(resources)} resources", file=sys.stderr)
