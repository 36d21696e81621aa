"""
Permission Models (tenant defaults and per-user overrides)
"""
from sqlalchemy import Column, String, Boolean, DateTime, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from mcp_gateway.utils.timezone_helpers import utcnow

from mcp_gateway.database import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")


class TenantDefaults(Base):
    __tablename__ = "tenant_defaults"

    tenant_id = Column(String, primary_key=True)
    permissions = Column(JSONType, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<TenantDefaults {self.tenant_id}>"


class UserPermission(Base):
    __tablename__ = "user_permissions"

    user_id = Column(String, primary_key=True)
    tenant_id = Column(String, primary_key=True)
    overrides = Column(JSONType, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_user_permissions_tenant", "tenant_id"),
    )

    def __repr__(self):
        return f"<UserPermission {self.user_id}@{self.tenant_id} active={self.active}>"
