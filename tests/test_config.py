from __future__ import annotations

import pytest

from mcp_gateway.config import MIN_SIGNING_SECRET_BYTES, Settings, validate_signing_secret
from mcp_gateway.config.capabilities import CAPABILITY_KEYS, TOOLS, Operation, is_capability, parse_operation
from mcp_gateway.errors import WeakSigningSecretError


def test_signing_secret_length_is_measured_in_bytes() -> None:
    # 16 two-byte characters are 32 bytes
    secret = "é" * 16
    assert validate_signing_secret(Settings(MCP_SIGNING_SECRET=secret)) == secret


def test_signing_secret_minimum() -> None:
    assert validate_signing_secret(Settings(MCP_SIGNING_SECRET="a" * MIN_SIGNING_SECRET_BYTES))
    with pytest.raises(WeakSigningSecretError) as excinfo:
        validate_signing_secret(Settings(MCP_SIGNING_SECRET="a" * (MIN_SIGNING_SECRET_BYTES - 1)))
    assert "openssl rand -hex 32" in excinfo.value.message


def test_settings_read_environment(monkeypatch) -> None:
    monkeypatch.setenv("TOKEN_EXPIRE_DAYS", "30")
    monkeypatch.setenv("TOKEN_SWEEP_IN_PROCESS", "false")

    settings = Settings()
    assert settings.TOKEN_EXPIRE_DAYS == 30
    assert settings.TOKEN_SWEEP_IN_PROCESS is False


def test_default_credential_lifetime() -> None:
    assert Settings().TOKEN_EXPIRE_DAYS == 90
    assert Settings().ALGORITHM == "HS256"


def test_every_tool_is_gated_by_a_known_capability() -> None:
    for name, tool in TOOLS.items():
        assert is_capability(tool["capability"]), name
        assert isinstance(tool["operation"], Operation)
    assert set(CAPABILITY_KEYS) == {"channels", "chat", "users"}


def test_parse_operation() -> None:
    assert parse_operation("READ") is Operation.READ
    assert parse_operation(Operation.WRITE) is Operation.WRITE
    with pytest.raises(ValueError):
        parse_operation("delete")
