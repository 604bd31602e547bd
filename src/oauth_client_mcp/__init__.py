"""OAuth 2.0 client credential manager with an MCP server surface.

Caches access tokens per (client config, user, scope), refreshes them transparently,
and issues single-use CSRF state for the authorization-code flow.
"""

__version__ = "1.0.0"

from .errors import (
    CallbackError,
    ExchangeFailure,
    InvalidArgument,
    InvalidField,
    InvalidScope,
    InvalidState,
    MissingField,
    SafeError,
    StorageError,
)
from .manager import CredentialManager
from .scope import ScopeSet
from .storage import MemoryStorage, TokenStorage
from .tokens import AccessToken, AuthState, Context, RefreshToken

__all__ = [
    "AccessToken",
    "AuthState",
    "CallbackError",
    "Context",
    "CredentialManager",
    "ExchangeFailure",
    "InvalidArgument",
    "InvalidField",
    "InvalidScope",
    "InvalidState",
    "MemoryStorage",
    "MissingField",
    "RefreshToken",
    "SafeError",
    "ScopeSet",
    "StorageError",
    "TokenStorage",
]
