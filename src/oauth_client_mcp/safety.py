"""Safety helpers.

Implements deterministic secret detection for agent-provided inputs and the
fingerprinting used wherever a token has to be identified in output or logs.

Key rule: token values and client secrets never leave this process through tool
results, log lines or audit events.
"""

from __future__ import annotations

import hashlib
import re
from typing import Any

from .errors import SafeError

_CRED_FIELD_NAMES = {
    "token",
    "access_token",
    "refresh_token",
    "id_token",
    "authorization",
    "password",
    "client_secret",
    "jwt",
}

_JWT_LIKE_RE = re.compile(r"^[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+$")

FINGERPRINT_LENGTH = 12


def looks_like_secret_value(value: str) -> bool:
    """Return True if the value looks like a credential.

    Matching rules:
    - bearer prefix treated case-insensitively
    - JWT-looking value treated as secret-like (conservative)
    """
    if not isinstance(value, str):
        return False
    trimmed = value.lstrip()
    if trimmed.lower().startswith(("bearer ", "basic ")):
        return True
    if len(trimmed) >= 40 and _JWT_LIKE_RE.match(trimmed):
        return True
    return False


def looks_like_credential_field_name(field_name: str) -> bool:
    """Return True if a key name looks like a credential field."""
    if not isinstance(field_name, str):
        return False
    return field_name.strip().lower() in _CRED_FIELD_NAMES


def validate_no_secrets(obj: Any) -> None:
    """Reject any agent-provided input that appears to contain credentials.

    Raises SafeError without echoing any suspected secret values.
    """
    if isinstance(obj, dict):
        for k, v in obj.items():
            if looks_like_credential_field_name(str(k)):
                raise SafeError(code="UserInput", message="Credential-like fields are not allowed")
            validate_no_secrets(v)
        return
    if isinstance(obj, list):
        for item in obj:
            validate_no_secrets(item)
        return
    if isinstance(obj, str):
        if looks_like_secret_value(obj):
            raise SafeError(code="UserInput", message="Credential-like values are not allowed")
        return


def token_fingerprint(value: str) -> str:
    """Return a short, stable, non-reversible identifier for a token value."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def redact_text(text: str) -> str:
    """Return a redacted representation safe for logs."""
    if not isinstance(text, str):
        return "<non-string>"
    if looks_like_secret_value(text):
        return "<redacted>"
    return text
