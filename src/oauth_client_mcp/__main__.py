#!/usr/bin/env python3
"""oauth-client-mcp entry point.

Run:
  python -m oauth_client_mcp                 # serve over stdio
  python -m oauth_client_mcp --test          # list tools/resources, then exit
  python -m oauth_client_mcp --check-config  # validate OAUTH_* env vars, then exit
"""

import argparse
import asyncio
import sys

from oauth_client_mcp import __version__
from oauth_client_mcp.config import load_config_from_env
from oauth_client_mcp.errors import SafeError
from oauth_client_mcp.server import run_server, test_server


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="oauth_client_mcp", description="OAuth 2.0 client credential MCP server")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--test",
        action="store_true",
        help="List tools and resources through the server handlers, then exit.",
    )
    mode.add_argument(
        "--check-config",
        action="store_true",
        help="Load the client configuration from the environment and report problems.",
    )
    return parser.parse_args(argv)


def check_config() -> int:
    """Validate the environment; returns a process exit code."""
    try:
        config = load_config_from_env()
    except SafeError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 1
    print(
        f"Client config '{config.client_config_id}' OK "
        f"(token endpoint {config.client.token_endpoint}, "
        f"{'confidential' if config.client.client_secret else 'public'} client)",
        file=sys.stderr,
    )
    return 0


def main() -> None:
    args = parse_args(sys.argv[1:])
    if args.check_config:
        sys.exit(check_config())
    try:
        asyncio.run(test_server() if args.test else run_server())
    except KeyboardInterrupt:
        print("\nServer stopped by user", file=sys.stderr)


if __name__ == "__main__":
    main()
