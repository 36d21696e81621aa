"""
Permission Service: tenant defaults, per-user overrides and the resolver
that merges them into effective permissions.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from mcp_gateway.config.capabilities import Operation, is_capability, parse_operation
from mcp_gateway.database import Database, upsert
from mcp_gateway.models.permission import TenantDefaults, UserPermission
from mcp_gateway.schemas.permission import (
    OverrideMap,
    PermissionFlags,
    PermissionMap,
    UserPermissionRecord,
    UserPermissionSummary,
    dump_overrides,
    dump_permissions,
    empty_permissions,
    load_overrides,
    load_permissions,
    normalize_overrides,
    normalize_permissions,
)
from mcp_gateway.utils.timezone_helpers import utcnow

logger = logging.getLogger(__name__)


class PermissionStore:
    """Persistence for tenant defaults and per-user override records"""

    def __init__(self, db: Database):
        self.db = db

    # -- tenant defaults ---------------------------------------------------

    def get_tenant_defaults(self, tenant_id: str, session: Optional[Session] = None) -> Optional[PermissionMap]:
        """Stored defaults for a tenant, or None if the tenant has no row."""
        with self.db.scope(session) as s:
            row = s.get(TenantDefaults, tenant_id)
            if row is None:
                return None
            return load_permissions(row.permissions, "tenant_defaults", tenant_id)

    def set_tenant_defaults(self, tenant_id: str, permissions, session: Optional[Session] = None) -> PermissionMap:
        full = normalize_permissions(permissions)
        now = utcnow()
        with self.db.scope(session) as s:
            upsert(
                s,
                TenantDefaults,
                values={"tenant_id": tenant_id, "permissions": dump_permissions(full), "updated_at": now},
                index_elements=["tenant_id"],
                update={"permissions": dump_permissions(full), "updated_at": now},
            )
        return full

    # -- user records ------------------------------------------------------

    def get_user_record(self, user_id: str, tenant_id: str, session: Optional[Session] = None) -> Optional[UserPermissionRecord]:
        with self.db.scope(session) as s:
            row = s.get(UserPermission, (user_id, tenant_id))
            if row is None:
                return None
            return self._to_record(row)

    def set_user_overrides(self, user_id: str, tenant_id: str, overrides, session: Optional[Session] = None) -> OverrideMap:
        """Upsert a user's overrides. New rows start active; existing rows keep their flag."""
        parsed = normalize_overrides(overrides)
        stored = dump_overrides(parsed)
        now = utcnow()
        with self.db.scope(session) as s:
            upsert(
                s,
                UserPermission,
                values={
                    "user_id": user_id,
                    "tenant_id": tenant_id,
                    "overrides": stored,
                    "active": True,
                    "updated_at": now,
                },
                index_elements=["user_id", "tenant_id"],
                update={"overrides": stored, "updated_at": now},
            )
        return parsed

    def ensure_user_record(self, user_id: str, tenant_id: str, session: Optional[Session] = None) -> UserPermissionRecord:
        """Create an empty, active override record if the user has none yet."""
        with self.db.scope(session) as s:
            row = s.get(UserPermission, (user_id, tenant_id))
            if row is None:
                row = UserPermission(user_id=user_id, tenant_id=tenant_id, overrides={}, active=True, updated_at=utcnow())
                s.add(row)
                s.flush()
                logger.info("Created permission record for user %s in tenant %s", user_id, tenant_id)
            return self._to_record(row)

    def set_user_active(self, user_id: str, tenant_id: str, active: bool, session: Optional[Session] = None) -> bool:
        """Enable or disable a user. Returns False when the user has no record."""
        with self.db.scope(session) as s:
            result = s.execute(
                update(UserPermission)
                .where(UserPermission.user_id == user_id, UserPermission.tenant_id == tenant_id)
                .values(active=active, updated_at=utcnow())
            )
            return result.rowcount > 0

    def remove_user(self, user_id: str, tenant_id: str, session: Optional[Session] = None) -> bool:
        with self.db.scope(session) as s:
            result = s.execute(
                delete(UserPermission).where(
                    UserPermission.user_id == user_id,
                    UserPermission.tenant_id == tenant_id,
                )
            )
            return result.rowcount > 0

    def list_user_records(self, tenant_id: str, session: Optional[Session] = None) -> List[UserPermissionRecord]:
        with self.db.scope(session) as s:
            rows = s.execute(
                select(UserPermission)
                .where(UserPermission.tenant_id == tenant_id)
                .order_by(UserPermission.user_id)
            ).scalars().all()
            return [self._to_record(row) for row in rows]

    def delete_tenant(self, tenant_id: str, session: Optional[Session] = None) -> int:
        """Remove every permission row for a tenant (uninstall teardown)."""
        with self.db.scope(session) as s:
            users = s.execute(delete(UserPermission).where(UserPermission.tenant_id == tenant_id)).rowcount
            s.execute(delete(TenantDefaults).where(TenantDefaults.tenant_id == tenant_id))
            return users

    @staticmethod
    def _to_record(row: UserPermission) -> UserPermissionRecord:
        key = f"{row.user_id}/{row.tenant_id}"
        return UserPermissionRecord(
            user_id=row.user_id,
            tenant_id=row.tenant_id,
            overrides=load_overrides(row.overrides, "user_permissions", key),
            active=bool(row.active),
        )


def merge_permissions(defaults: PermissionMap, overrides: OverrideMap) -> PermissionMap:
    """
    Per-flag precedence: an override field that is set replaces the default's
    field; unset fields and absent keys keep the tenant default.
    """
    merged = {key: flags.model_copy() for key, flags in defaults.items()}
    for key, override in overrides.items():
        base = merged.get(key, PermissionFlags())
        merged[key] = PermissionFlags(
            read=base.read if override.read is None else override.read,
            write=base.write if override.write is None else override.write,
        )
    return merged


class PermissionResolver:
    """Computes effective permissions; read-only"""

    def __init__(self, store: PermissionStore):
        self.store = store

    def get_effective(self, user_id: str, tenant_id: str) -> PermissionMap:
        """
        Effective permission map for a user.

        - no tenant defaults row: defaults are all-false
        - no user record: tenant defaults verbatim
        - inactive user: all-false regardless of defaults or overrides
        - otherwise: defaults merged with the user's overrides, per flag
        """
        with self.store.db.session() as session:
            defaults = self.store.get_tenant_defaults(tenant_id, session=session)
            record = self.store.get_user_record(user_id, tenant_id, session=session)

        if defaults is None:
            defaults = empty_permissions()

        if record is None:
            return defaults

        if not record.active:
            return empty_permissions()

        return merge_permissions(defaults, record.overrides)

    def is_allowed(self, user_id: str, tenant_id: str, capability_key: str, operation) -> bool:
        """Whether the user may perform `operation` on `capability_key`; unknown keys deny."""
        if not is_capability(capability_key):
            return False
        try:
            op = parse_operation(operation)
        except ValueError:
            return False

        flags = self.get_effective(user_id, tenant_id).get(capability_key)
        if flags is None:
            return False
        return flags.read if op == Operation.READ else flags.write

    def has_any_permission(self, user_id: str, tenant_id: str) -> bool:
        return any(f.read or f.write for f in self.get_effective(user_id, tenant_id).values())

    def list_users(self, tenant_id: str) -> List[UserPermissionSummary]:
        """All users with a permission record in the tenant, with effective maps."""
        with self.store.db.session() as session:
            defaults = self.store.get_tenant_defaults(tenant_id, session=session)
            records = self.store.list_user_records(tenant_id, session=session)

        if defaults is None:
            defaults = empty_permissions()

        return [
            UserPermissionSummary(
                user_id=record.user_id,
                active=record.active,
                overrides=record.overrides,
                effective=merge_permissions(defaults, record.overrides) if record.active else empty_permissions(),
            )
            for record in records
        ]
