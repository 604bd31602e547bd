"""SQLite-backed token storage.

One table per record type. Primary keys mirror the identity of each record, so a
store replaces the previous record for the same key.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any

from .errors import SafeError, storage_error
from .scope import ScopeSet
from .tokens import AccessToken, AuthState, RefreshToken

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS access_token (
        client_config_id VARCHAR(255) NOT NULL,
        user_id VARCHAR(255) NOT NULL,
        scope VARCHAR(255) NOT NULL,
        access_token VARCHAR(255) NOT NULL,
        token_type VARCHAR(255) NOT NULL,
        issue_time INTEGER NOT NULL,
        expires_in INTEGER NOT NULL,
        PRIMARY KEY (client_config_id, user_id, scope)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_token (
        client_config_id VARCHAR(255) NOT NULL,
        user_id VARCHAR(255) NOT NULL,
        scope VARCHAR(255) NOT NULL,
        refresh_token VARCHAR(255) NOT NULL,
        issue_time INTEGER NOT NULL,
        PRIMARY KEY (client_config_id, user_id, scope)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS state (
        client_config_id VARCHAR(255) NOT NULL,
        user_id VARCHAR(255) NOT NULL,
        scope VARCHAR(255) NOT NULL,
        issue_time INTEGER NOT NULL,
        state VARCHAR(255) NOT NULL,
        PRIMARY KEY (client_config_id, user_id)
    )
    """,
)


class SqliteStorage:
    """Persistent storage in a single SQLite database file."""

    def __init__(self, path: Path) -> None:
        """Open (and create if needed) the database at ``path``.

        Raises:
            StorageError: If the database cannot be opened or initialized.
        """
        self._path = path
        with self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with closing(sqlite3.connect(self._path)) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    yield conn
        except SafeError:
            raise
        except (OSError, sqlite3.Error) as exc:
            logger.error("Token storage operation failed: %s", type(exc).__name__)
            raise storage_error("Token storage operation failed") from exc

    def _fetch_one(self, query: str, params: tuple[Any, ...]) -> dict[str, Any] | None:
        with self._connect() as conn:
            row = conn.execute(query, params).fetchone()
        if row is None:
            return None
        return dict(row)

    def _execute(self, query: str, params: tuple[Any, ...]) -> None:
        with self._connect() as conn:
            conn.execute(query, params)

    def get_access_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> AccessToken | None:
        row = self._fetch_one(
            "SELECT * FROM access_token WHERE client_config_id = ? AND user_id = ? AND scope = ?",
            (client_config_id, user_id, scope.value),
        )
        return AccessToken.from_mapping(row) if row is not None else None

    def store_access_token(self, token: AccessToken) -> None:
        self._execute(
            "INSERT OR REPLACE INTO access_token "
            "(client_config_id, user_id, scope, access_token, token_type, issue_time, expires_in) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (
                token.client_config_id,
                token.user_id,
                token.scope.value,
                token.access_token,
                token.token_type,
                token.issue_time,
                token.expires_in,
            ),
        )

    def delete_access_token(self, token: AccessToken) -> None:
        self._execute(
            "DELETE FROM access_token WHERE client_config_id = ? AND user_id = ? AND scope = ?",
            (token.client_config_id, token.user_id, token.scope.value),
        )

    def get_refresh_token(self, client_config_id: str, user_id: str, scope: ScopeSet) -> RefreshToken | None:
        row = self._fetch_one(
            "SELECT * FROM refresh_token WHERE client_config_id = ? AND user_id = ? AND scope = ?",
            (client_config_id, user_id, scope.value),
        )
        return RefreshToken.from_mapping(row) if row is not None else None

    def store_refresh_token(self, token: RefreshToken) -> None:
        self._execute(
            "INSERT OR REPLACE INTO refresh_token "
            "(client_config_id, user_id, scope, refresh_token, issue_time) VALUES (?, ?, ?, ?, ?)",
            (token.client_config_id, token.user_id, token.scope.value, token.refresh_token, token.issue_time),
        )

    def delete_refresh_token(self, token: RefreshToken) -> None:
        self._execute(
            "DELETE FROM refresh_token WHERE client_config_id = ? AND user_id = ? AND scope = ?",
            (token.client_config_id, token.user_id, token.scope.value),
        )

    def store_state(self, state: AuthState) -> None:
        self._execute(
            "INSERT OR REPLACE INTO state (client_config_id, user_id, scope, issue_time, state) VALUES (?, ?, ?, ?, ?)",
            (state.client_config_id, state.user_id, state.scope.value, state.issue_time, state.state),
        )

    def delete_state_for_user(self, client_config_id: str, user_id: str) -> None:
        self._execute(
            "DELETE FROM state WHERE client_config_id = ? AND user_id = ?",
            (client_config_id, user_id),
        )

    def get_state_for_user(self, client_config_id: str, user_id: str) -> AuthState | None:
        row = self._fetch_one(
            "SELECT * FROM state WHERE client_config_id = ? AND user_id = ?",
            (client_config_id, user_id),
        )
        return AuthState.from_mapping(row) if row is not None else None
