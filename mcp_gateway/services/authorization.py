"""
Authorization Facade. The single entry point for the transport layer and the
admin/user-facing UI layer.
"""
import logging
from typing import Any, Dict, List, Optional

from mcp_gateway.config import Settings
from mcp_gateway.config.capabilities import TOOLS, parse_operation
from mcp_gateway.database import Database
from mcp_gateway.errors import (
    AuthorizationError,
    PermissionDeniedError,
    ResourceBlockedError,
    TenantNotInstalledError,
    UnknownToolError,
)
from mcp_gateway.schemas.access import AuthorizationDecision
from mcp_gateway.schemas.credential import Identity
from mcp_gateway.schemas.installation import ExecutionCredential, InstallationQuery, InstallationRecord
from mcp_gateway.schemas.permission import OverrideMap, PermissionMap, UserPermissionRecord, UserPermissionSummary
from mcp_gateway.schemas.resource_block import BlockOptions, BlockedResource
from mcp_gateway.services.channel_access_service import ChannelAccessGuard, ChannelAccessStore
from mcp_gateway.services.permission_service import PermissionResolver, PermissionStore
from mcp_gateway.services.tenant_directory import TenantDirectory
from mcp_gateway.services.token_service import TokenRegistry, TokenService

logger = logging.getLogger(__name__)


class AuthorizationFacade:
    """Authenticate, authorize and resolve execution credentials"""

    def __init__(
        self,
        permissions: PermissionResolver,
        channels: ChannelAccessGuard,
        tokens: TokenService,
        tenants: TenantDirectory,
    ):
        self.permissions = permissions
        self.channels = channels
        self.tokens = tokens
        self.tenants = tenants

    @classmethod
    def build(cls, db: Database, settings: Settings, **token_kwargs) -> "AuthorizationFacade":
        """Wire every component around one explicitly constructed store."""
        return cls(
            permissions=PermissionResolver(PermissionStore(db)),
            channels=ChannelAccessGuard(ChannelAccessStore(db)),
            tokens=TokenService(TokenRegistry(db), settings, **token_kwargs),
            tenants=TenantDirectory(db, settings),
        )

    @property
    def permission_store(self) -> PermissionStore:
        return self.permissions.store

    # ------------------------------------------------------------------
    # Transport layer surface
    # ------------------------------------------------------------------

    def authenticate(self, bearer_credential: Optional[str]) -> Identity:
        """Verify a bearer credential; raises an AuthenticationError subclass on failure."""
        return self.tokens.verify(bearer_credential)

    def require(self, identity: Identity, capability_key: str, operation, resource_id: Optional[str] = None) -> None:
        """
        Raise unless the identity may perform the operation.

        Raises:
            PermissionDeniedError: capability flag is off (or key or operation unknown)
            ResourceBlockedError: channel is blocked for this direction
        """
        try:
            op = parse_operation(operation)
        except ValueError:
            raise PermissionDeniedError(capability_key, str(operation))
        if not self.permissions.is_allowed(identity.user_id, identity.tenant_id, capability_key, op):
            raise PermissionDeniedError(capability_key, op.value)
        if resource_id and not self.channels.is_allowed(resource_id, identity.tenant_id, op):
            raise ResourceBlockedError(resource_id, op.value)

    def authorize(self, identity: Identity, capability_key: str, operation, resource_id: Optional[str] = None) -> AuthorizationDecision:
        """Allow, or Deny with the denial category as reason."""
        try:
            self.require(identity, capability_key, operation, resource_id)
        except AuthorizationError as e:
            logger.info(
                "Denied %s for user %s in tenant %s: %s",
                capability_key, identity.user_id, identity.tenant_id, e.reason,
            )
            return AuthorizationDecision.deny(e)
        return AuthorizationDecision.allow()

    def authorize_tool(self, identity: Identity, tool_name: str, arguments: Optional[Dict[str, Any]] = None) -> AuthorizationDecision:
        """Authorize a downstream tool call by its registered capability gate."""
        tool = TOOLS.get(tool_name)
        if tool is None:
            return AuthorizationDecision.deny(UnknownToolError(tool_name))

        resource_id = None
        if tool["resource_arg"] and arguments:
            value = arguments.get(tool["resource_arg"])
            resource_id = str(value) if value else None

        return self.authorize(identity, tool["capability"], tool["operation"], resource_id)

    def list_permitted_tools(self, identity: Identity) -> List[str]:
        """Tool names whose capability gate the identity passes."""
        effective = self.permissions.get_effective(identity.user_id, identity.tenant_id)
        permitted = []
        for name, tool in TOOLS.items():
            flags = effective.get(tool["capability"])
            if flags is not None and getattr(flags, tool["operation"].value):
                permitted.append(name)
        return permitted

    def resolve_execution_credential(self, tenant_id: str) -> ExecutionCredential:
        credential = self.tenants.resolve_execution_credential(tenant_id)
        if credential is None:
            raise TenantNotInstalledError(tenant_id)
        return credential

    # ------------------------------------------------------------------
    # Admin / user-facing UI surface
    # ------------------------------------------------------------------

    def get_effective_permissions(self, user_id: str, tenant_id: str) -> PermissionMap:
        return self.permissions.get_effective(user_id, tenant_id)

    def has_any_permission(self, user_id: str, tenant_id: str) -> bool:
        return self.permissions.has_any_permission(user_id, tenant_id)

    def ensure_user(self, user_id: str, tenant_id: str) -> UserPermissionRecord:
        """Eagerly create the user's empty override record (first view of the UI)."""
        return self.permission_store.ensure_user_record(user_id, tenant_id)

    def set_tenant_defaults(self, tenant_id: str, permissions) -> PermissionMap:
        return self.permission_store.set_tenant_defaults(tenant_id, permissions)

    def set_user_overrides(self, user_id: str, tenant_id: str, overrides) -> OverrideMap:
        """Save overrides and revoke the user's credentials so the new scope needs re-issuance."""
        with self.permission_store.db.session() as session:
            saved = self.permission_store.set_user_overrides(user_id, tenant_id, overrides, session=session)
            self.tokens.revoke_all(user_id, tenant_id, session=session)
        return saved

    def set_user_active(self, user_id: str, tenant_id: str, active: bool) -> bool:
        with self.permission_store.db.session() as session:
            changed = self.permission_store.set_user_active(user_id, tenant_id, active, session=session)
            if not active:
                self.tokens.revoke_all(user_id, tenant_id, session=session)
        return changed

    def remove_user(self, user_id: str, tenant_id: str) -> bool:
        with self.permission_store.db.session() as session:
            removed = self.permission_store.remove_user(user_id, tenant_id, session=session)
            self.tokens.revoke_all(user_id, tenant_id, session=session)
        return removed

    def list_users(self, tenant_id: str) -> List[UserPermissionSummary]:
        return self.permissions.list_users(tenant_id)

    def issue_credential(self, user_id: str, tenant_id: str) -> str:
        return self.tokens.issue(user_id, tenant_id)

    def revoke_credential(self, jti: str) -> bool:
        return self.tokens.revoke(jti)

    def block_resource(self, resource_id: str, tenant_id: str, options: BlockOptions) -> BlockedResource:
        return self.channels.block(resource_id, tenant_id, options)

    def unblock_resource(self, resource_id: str, tenant_id: str) -> bool:
        return self.channels.unblock(resource_id, tenant_id)

    def list_blocked_resources(self, tenant_id: str) -> List[BlockedResource]:
        return self.channels.list_blocked(tenant_id)

    # ------------------------------------------------------------------
    # Installation lifecycle
    # ------------------------------------------------------------------

    def store_installation(self, record: InstallationRecord) -> str:
        return self.tenants.upsert_installation(record)

    def fetch_installation(self, query: InstallationQuery) -> Optional[InstallationRecord]:
        return self.tenants.fetch_installation(query)

    def delete_installation(self, query: InstallationQuery) -> bool:
        return self.tenants.delete_installation(query)

    def teardown_tenant(self, tenant_id: str) -> None:
        """
        Remove a tenant: installations, every credential (revoked), permission
        rows and blocklist rows, in one transaction.
        """
        db = self.tenants.db
        with db.session() as session:
            installs = self.tenants.delete_tenant(tenant_id, session=session)
            revoked = self.tokens.registry.revoke_all_for_tenant(tenant_id, session=session)
            users = self.permission_store.delete_tenant(tenant_id, session=session)
            blocks = self.channels.store.delete_tenant(tenant_id, session=session)
        logger.info(
            "Cleaned up tenant %s: %d installation(s), %d credential(s) revoked, %d user(s), %d block(s)",
            tenant_id, installs, revoked, users, blocks,
        )

    def sweep_credentials(self) -> int:
        return self.tokens.sweep()