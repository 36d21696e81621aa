from __future__ import annotations

import pytest

from mcp_gateway.config.capabilities import CAPABILITY_KEYS, TOOLS, Operation
from mcp_gateway.errors import (
    CredentialRevokedError,
    PermissionDeniedError,
    ResourceBlockedError,
    TenantNotInstalledError,
)
from mcp_gateway.schemas.installation import InstallationRecord
from mcp_gateway.schemas.resource_block import BlockOptions


@pytest.fixture
def identity(facade):
    facade.set_tenant_defaults("T1", {"channels": {"read": True, "write": False}})
    return facade.authenticate(facade.issue_credential("U1", "T1"))


def test_capability_allowed_but_channel_blocked(facade, identity) -> None:
    """The capability check passes, the blocklist denies."""
    facade.block_resource("C1", "T1", BlockOptions(block_read=True, block_write=False, actor="admin-1"))

    facade.require(identity, "channels", Operation.READ)
    with pytest.raises(ResourceBlockedError):
        facade.require(identity, "channels", Operation.READ, resource_id="C1")
    facade.require(identity, "channels", Operation.READ, resource_id="C2")


def test_capability_checked_before_blocklist(facade, identity) -> None:
    facade.block_resource("C1", "T1", BlockOptions(actor="admin-1"))

    with pytest.raises(PermissionDeniedError) as excinfo:
        facade.require(identity, "chat", "write", resource_id="C1")
    assert str(excinfo.value) == "permission denied for chat:write"


def test_authorize_returns_decision(facade, identity) -> None:
    facade.block_resource("C1", "T1", BlockOptions(actor="admin-1"))

    assert facade.authorize(identity, "channels", "read").allowed is True

    denied = facade.authorize(identity, "users", "read")
    assert denied.allowed is False
    assert denied.code == "permission_denied"
    assert denied.reason == "permission denied for users:read"

    blocked = facade.authorize(identity, "channels", "read", resource_id="C1")
    assert blocked.allowed is False
    assert blocked.code == "resource_blocked"


def test_authorize_tool(facade, identity) -> None:
    facade.block_resource("C1", "T1", BlockOptions(actor="admin-1"))

    assert facade.authorize_tool(identity, "slack_list_channels").allowed is True
    assert facade.authorize_tool(identity, "slack_read_channel", {"channel": "C2"}).allowed is True
    assert facade.authorize_tool(identity, "slack_read_channel", {"channel": "C1"}).code == "resource_blocked"
    assert facade.authorize_tool(identity, "slack_post_message", {"channel": "C2"}).code == "permission_denied"
    assert facade.authorize_tool(identity, "slack_delete_everything").code == "unknown_tool"


def test_list_permitted_tools(facade, identity) -> None:
    assert facade.list_permitted_tools(identity) == ["slack_list_channels", "slack_read_channel"]

    facade.set_tenant_defaults("T1", {key: {"read": True, "write": True} for key in CAPABILITY_KEYS})
    assert facade.list_permitted_tools(identity) == list(TOOLS)


def test_override_change_revokes_credentials(facade, identity) -> None:
    token = facade.issue_credential("U1", "T1")
    facade.set_user_overrides("U1", "T1", {"chat": {"write": True}})

    with pytest.raises(CredentialRevokedError):
        facade.authenticate(token)
    assert facade.get_effective_permissions("U1", "T1")["chat"].write is True


def test_tenant_default_change_keeps_credentials(facade, identity) -> None:
    token = facade.issue_credential("U1", "T1")
    facade.set_tenant_defaults("T1", {"users": {"read": True, "write": False}})

    assert facade.authenticate(token).user_id == "U1"


def test_deactivation_revokes_and_denies(facade, identity) -> None:
    token = facade.issue_credential("U1", "T1")
    facade.ensure_user("U1", "T1")

    assert facade.set_user_active("U1", "T1", False) is True
    with pytest.raises(CredentialRevokedError):
        facade.authenticate(token)
    assert facade.has_any_permission("U1", "T1") is False

    facade.set_user_active("U1", "T1", True)
    assert facade.has_any_permission("U1", "T1") is True


def test_remove_user_revokes_credentials(facade, identity) -> None:
    token = facade.issue_credential("U1", "T1")
    facade.ensure_user("U1", "T1")

    assert facade.remove_user("U1", "T1") is True
    with pytest.raises(CredentialRevokedError):
        facade.authenticate(token)
    assert facade.list_users("T1") == []


def test_revoke_credential(facade, identity) -> None:
    token = facade.issue_credential("U1", "T1")
    jti = facade.authenticate(token).jti

    assert facade.revoke_credential(jti) is True
    assert facade.revoke_credential(jti) is False


def test_resolve_execution_credential(facade) -> None:
    with pytest.raises(TenantNotInstalledError):
        facade.resolve_execution_credential("T1")

    facade.store_installation(InstallationRecord(workspace_id="T1", bot_token="xoxb-1"))
    assert facade.resolve_execution_credential("T1").bot_token == "xoxb-1"


def test_installation_roundtrip_through_facade(facade) -> None:
    from mcp_gateway.schemas.installation import InstallationQuery

    assert facade.store_installation(InstallationRecord(workspace_id="T1", bot_token="xoxb-1")) == "workspace:T1"
    query = InstallationQuery(workspace_id="T1")
    assert facade.fetch_installation(query).bot_token == "xoxb-1"
    assert facade.delete_installation(query) is True


def test_teardown_tenant(facade) -> None:
    facade.store_installation(InstallationRecord(workspace_id="T1", bot_token="xoxb-1"))
    facade.store_installation(InstallationRecord(workspace_id="T2", bot_token="xoxb-2"))
    facade.set_tenant_defaults("T1", {"chat": {"read": True, "write": True}})
    facade.ensure_user("U1", "T1")
    facade.block_resource("C1", "T1", BlockOptions(actor="admin-1"))
    token = facade.issue_credential("U1", "T1")
    other = facade.issue_credential("U1", "T2")

    facade.teardown_tenant("T1")

    with pytest.raises(TenantNotInstalledError):
        facade.resolve_execution_credential("T1")
    with pytest.raises(CredentialRevokedError):
        facade.authenticate(token)
    assert facade.list_users("T1") == []
    assert facade.list_blocked_resources("T1") == []
    assert facade.has_any_permission("U1", "T1") is False

    # Other tenants survive
    assert facade.resolve_execution_credential("T2").bot_token == "xoxb-2"
    assert facade.authenticate(other).tenant_id == "T2"


def test_sweep_credentials(facade) -> None:
    facade.issue_credential("U1", "T1")
    facade.issue_credential("U1", "T1")

    assert facade.sweep_credentials() == 1


def test_unknown_operation_is_denied(facade, identity) -> None:
    facade.block_resource("C1", "T1", BlockOptions(actor="admin-1"))

    denied = facade.authorize(identity, "chat", "delete")
    assert denied.allowed is False
    assert denied.code == "permission_denied"
    assert facade.authorize(identity, "channels", "delete", resource_id="C1").allowed is False
    with pytest.raises(PermissionDeniedError):
        facade.require(identity, "channels", "admin")


def test_failed_revoke_rolls_back_override_change(facade, identity, monkeypatch) -> None:
    token = facade.issue_credential("U1", "T1")

    def broken_revoke_all(*args, **kwargs):
        raise RuntimeError("revoke failed")

    monkeypatch.setattr(facade.tokens.registry, "revoke_all", broken_revoke_all)
    with pytest.raises(RuntimeError):
        facade.set_user_overrides("U1", "T1", {"chat": {"write": True}})
    with pytest.raises(RuntimeError):
        facade.remove_user("U1", "T1")

    assert facade.permission_store.get_user_record("U1", "T1") is None
    assert facade.get_effective_permissions("U1", "T1")["chat"].write is False
    assert facade.authenticate(token).user_id == "U1"


def test_failed_revoke_rolls_back_deactivation(facade, identity, monkeypatch) -> None:
    facade.ensure_user("U1", "T1")

    def broken_revoke_all(*args, **kwargs):
        raise RuntimeError("revoke failed")

    monkeypatch.setattr(facade.tokens.registry, "revoke_all", broken_revoke_all)
    with pytest.raises(RuntimeError):
        facade.set_user_active("U1", "T1", False)

    assert facade.permission_store.get_user_record("U1", "T1").active is True
