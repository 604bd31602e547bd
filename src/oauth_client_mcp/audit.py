"""Structured audit logging.

One JSON line per tool invocation, written to stderr and optionally appended to a
size-rotated file. Events identify tokens by fingerprint only; token values, the
client secret, authorization codes and CSRF state values are never recorded.
"""

from __future__ import annotations

import json
import sys
import time
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


def new_correlation_id() -> str:
    """Generate a random correlation id for traceability."""
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Outcome of one tool invocation for one client registration."""

    timestamp: str
    correlation_id: str
    operation: str
    client_config_id: str
    outcome: str
    reason: str | None = None
    duration_ms: int | None = None
    token_fingerprint: str | None = None

    def to_json(self) -> str:
        payload: dict[str, Any] = {k: v for k, v in asdict(self).items() if v is not None}
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def _backup(path: Path, index: int) -> Path:
    return path.with_name(f"{path.name}.{index}")


def _rotate(path: Path, max_backups: int) -> None:
    """Shift ``path`` to ``path.1`` (and ``.1`` to ``.2`` ...), dropping the oldest."""
    if max_backups <= 0:
        path.write_text("", encoding="utf-8")
        return
    _backup(path, max_backups).unlink(missing_ok=True)
    for index in range(max_backups - 1, 0, -1):
        if _backup(path, index).exists():
            _backup(path, index).replace(_backup(path, index + 1))
    path.replace(_backup(path, 1))


class AuditLogger:
    """Writes audit events as JSONL to stderr and optionally to a file."""

    def __init__(
        self,
        *,
        sink_path: Path | None,
        max_bytes: int = 5 * 1024 * 1024,
        max_backups: int = 2,
    ) -> None:
        """Create an audit logger.

        Args:
            sink_path: Optional JSONL file; ``None`` logs to stderr only.
            max_bytes: Size at which the file is rotated before the next write.
            max_backups: Rotated files kept; 0 truncates in place.
        """
        self._sink_path = sink_path
        self._max_bytes = max_bytes
        self._max_backups = max_backups

    def _append(self, line: str) -> None:
        path = self._sink_path
        if path is None:
            return
        # File sink problems never fail the tool call; stderr already has the event.
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            if path.exists() and path.stat().st_size >= self._max_bytes:
                _rotate(path, self._max_backups)
            with path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError:  # pragma: no cover
            return

    def write_event(self, event: AuditEvent) -> None:
        line = event.to_json()
        print(line, file=sys.stderr)
        self._append(line)

    def measure_start(self) -> float:
        """Return a monotonic start timestamp for duration measurement."""
        return time.monotonic()

    def measure_duration_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)


def build_event(
    *,
    correlation_id: str,
    operation: str,
    client_config_id: str,
    outcome: str,
    reason: str | None = None,
    duration_ms: int | None = None,
    token_fingerprint: str | None = None,
) -> AuditEvent:
    """Construct an audit event stamped with the current UTC time."""
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        correlation_id=correlation_id,
        operation=operation,
        client_config_id=client_config_id,
        outcome=outcome,
        reason=reason,
        duration_ms=duration_ms,
        token_fingerprint=token_fingerprint,
    )
