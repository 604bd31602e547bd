"""CLI entry point tests."""

from __future__ import annotations

import pytest
from oauth_client_mcp.__main__ import check_config, parse_args


def test_parse_args_modes() -> None:
    assert parse_args([]).test is False
    assert parse_args(["--test"]).test is True
    assert parse_args(["--check-config"]).check_config is True
    with pytest.raises(SystemExit):
        parse_args(["--test", "--check-config"])


def test_check_config_reports_missing_env(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("OAUTH_CLIENT_ID", raising=False)

    assert check_config() == 1
    assert "Configuration error" in capsys.readouterr().err


def test_check_config_never_prints_secret(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setenv("OAUTH_CLIENT_ID", "my-client")
    monkeypatch.setenv("OAUTH_CLIENT_SECRET", "s3cret-value")
    monkeypatch.setenv("OAUTH_AUTHORIZE_ENDPOINT", "https://auth.example.org/authorize")
    monkeypatch.setenv("OAUTH_TOKEN_ENDPOINT", "https://auth.example.org/token")
    for name in ("OAUTH_REDIRECT_URI", "OAUTH_CLIENT_CONFIG_ID", "OAUTH_CREDENTIALS_IN_REQUEST_BODY",
                 "OAUTH_DEFAULT_EXPIRES_IN", "OAUTH_CLIENT_MCP_STORAGE_PATH", "OAUTH_CLIENT_MCP_AUDIT_LOG_PATH"):
        monkeypatch.delenv(name, raising=False)

    assert check_config() == 0
    err = capsys.readouterr().err
    assert "confidential client" in err
    assert "s3cret-value" not in err
