"""Error taxonomy and result envelopes."""

from __future__ import annotations

import pytest
from oauth_client_mcp.errors import (CallbackError, ConfigError,
                                     ExchangeFailure, InvalidArgument,
                                     InvalidField, InvalidScope, MissingField,
                                     SafeError, StorageError, config_error,
                                     exchange_failure, internal_error,
                                     invalid_field, invalid_scope,
                                     missing_field, safe_error_to_result,
                                     storage_error)


@pytest.mark.parametrize(
    ("err", "cls", "code"),
    [
        (invalid_scope("a  b"), InvalidScope, "InvalidScope"),
        (invalid_field("bad issue_time"), InvalidField, "InvalidField"),
        (missing_field("scope"), MissingField, "MissingField"),
        (storage_error("disk full"), StorageError, "Storage"),
        (exchange_failure("rejected", status_code=400), ExchangeFailure, "Exchange"),
        (config_error("missing OAUTH_CLIENT_ID"), ConfigError, "Config"),
    ],
)
def test_factories_build_typed_errors(err: SafeError, cls: type, code: str) -> None:
    assert type(err) is cls
    assert err.code == code
    assert isinstance(err, Exception)


def test_argument_errors_share_a_base() -> None:
    for err in (invalid_scope(None), invalid_field("x"), missing_field("user_id")):
        assert isinstance(err, InvalidArgument)
    assert not isinstance(storage_error("x"), InvalidArgument)
    assert not isinstance(CallbackError(code="Callback", message="x"), InvalidArgument)


def test_messages() -> None:
    assert invalid_scope(None).message == "scope needs to be a string"
    assert invalid_scope("a  b").message == "invalid scope 'a  b'"
    assert missing_field("scope").message == "missing field 'scope'"


def test_exchange_failure_keeps_status_code() -> None:
    err = exchange_failure("unreachable", code="Network")
    assert err.code == "Network"
    assert err.status_code is None
    assert exchange_failure("rejected", status_code=401).status_code == 401


def test_envelopes() -> None:
    assert internal_error() == {"ok": False, "code": "Internal", "message": "Internal error"}
    err = StorageError(code="Storage", message="down", hint="retry later")
    assert safe_error_to_result(err) == {"ok": False, "code": "Storage", "message": "down", "hint": "retry later"}
