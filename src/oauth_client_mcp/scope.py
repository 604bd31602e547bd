"""Canonical OAuth scope values.

A raw scope is one or more space-separated scope tokens (RFC 6749 section 3.3). The
canonical form deduplicates and sorts the tokens, so "write read read" and "read write"
name the same storage slot.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from .errors import invalid_scope

_SCOPE_TOKEN = r"(?:\x21|[\x23-\x5B]|[\x5D-\x7E])+"
_SCOPE_RE = re.compile(rf"{_SCOPE_TOKEN}(?: {_SCOPE_TOKEN})*")


def canonicalize(raw: str) -> str:
    """Return the canonical form of an already validated scope string."""
    return " ".join(sorted(set(raw.split(" "))))


@dataclass(frozen=True, slots=True)
class ScopeSet:
    """A validated scope in canonical form.

    The empty ScopeSet stands for "no scope requested"; only ``parse(..., allow_empty=True)``
    or ``ScopeSet.empty()`` produce it.
    """

    value: str

    @classmethod
    def parse(cls, raw: object, *, allow_empty: bool = False) -> ScopeSet:
        """Validate ``raw`` and return its canonical ScopeSet.

        Raises:
            InvalidScope: If ``raw`` is not a string or violates the scope grammar.
        """
        if not isinstance(raw, str):
            raise invalid_scope(raw)
        if raw == "" and allow_empty:
            return cls.empty()
        if _SCOPE_RE.fullmatch(raw) is None:
            raise invalid_scope(raw)
        return cls(canonicalize(raw))

    @classmethod
    def empty(cls) -> ScopeSet:
        return cls("")

    def is_empty(self) -> bool:
        return not self.value

    def equals(self, other: ScopeSet) -> bool:
        return self.value == other.value

    def __str__(self) -> str:
        return self.value
