"""
Resource Blocklist Model for chat channels
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index
from mcp_gateway.utils.timezone_helpers import utcnow

from mcp_gateway.database import Base


class ResourceBlock(Base):
    __tablename__ = "resource_blocklist"

    resource_id = Column(String, primary_key=True)
    tenant_id = Column(String, primary_key=True)
    name = Column(String, nullable=True)
    block_read = Column(Boolean, default=True, nullable=False)
    block_write = Column(Boolean, default=True, nullable=False)
    actor = Column(String, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        Index("ix_resource_blocklist_tenant", "tenant_id"),
    )

    def __repr__(self):
        return f"<ResourceBlock {self.resource_id}@{self.tenant_id} read={self.block_read} write={self.block_write}>"
