"""
Credential Model
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index, text
from mcp_gateway.utils.timezone_helpers import utcnow

from mcp_gateway.database import Base


class Credential(Base):
    __tablename__ = "credentials"

    jti = Column(String(36), primary_key=True)
    user_id = Column(String, nullable=False)
    tenant_id = Column(String, nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)
    issued_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_credentials_user_tenant", "user_id", "tenant_id"),
        Index("ix_credentials_tenant", "tenant_id"),
        Index("ix_credentials_expires_at", "expires_at"),
        # At most one non-revoked credential per (user, tenant)
        Index(
            "uq_credentials_active_identity",
            "user_id",
            "tenant_id",
            unique=True,
            postgresql_where=text("NOT revoked"),
            sqlite_where=text("NOT revoked"),
        ),
    )

    def __repr__(self):
        return f"<Credential {self.jti} {self.user_id}@{self.tenant_id} revoked={self.revoked}>"
