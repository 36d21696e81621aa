"""
Channel Access Service. Explicit-deny blocklist for channels.

Default-allow: a channel with no blocklist row is unrestricted. Read and write
restrictions are independent.
"""
import logging
from typing import List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from mcp_gateway.config.capabilities import Operation, parse_operation
from mcp_gateway.database import Database, upsert
from mcp_gateway.models.resource_block import ResourceBlock
from mcp_gateway.schemas.resource_block import BlockOptions, BlockedResource
from mcp_gateway.utils.timezone_helpers import utcnow

logger = logging.getLogger(__name__)


class ChannelAccessStore:
    """Persistence for per-tenant channel blocklist rows"""

    def __init__(self, db: Database):
        self.db = db

    def get(self, resource_id: str, tenant_id: str, session: Optional[Session] = None) -> Optional[BlockedResource]:
        with self.db.scope(session) as s:
            row = s.get(ResourceBlock, (resource_id, tenant_id))
            return BlockedResource.model_validate(row) if row is not None else None

    def upsert(self, resource_id: str, tenant_id: str, options: BlockOptions, session: Optional[Session] = None) -> None:
        """
        Insert or update a block. On conflict the stored name is kept unless a
        new non-empty name is given; flags and actor are always overwritten.
        """
        name = (options.name or "").strip() or None
        with self.db.scope(session) as s:
            upsert(
                s,
                ResourceBlock,
                values={
                    "resource_id": resource_id,
                    "tenant_id": tenant_id,
                    "name": name,
                    "block_read": options.block_read,
                    "block_write": options.block_write,
                    "actor": options.actor,
                    "created_at": utcnow(),
                },
                index_elements=["resource_id", "tenant_id"],
                update={
                    "name": lambda excluded, current: func.coalesce(excluded.name, current.name),
                    "block_read": options.block_read,
                    "block_write": options.block_write,
                    "actor": options.actor,
                },
            )

    def delete(self, resource_id: str, tenant_id: str, session: Optional[Session] = None) -> bool:
        with self.db.scope(session) as s:
            result = s.execute(
                delete(ResourceBlock).where(
                    ResourceBlock.resource_id == resource_id,
                    ResourceBlock.tenant_id == tenant_id,
                )
            )
            return result.rowcount > 0

    def list_for_tenant(self, tenant_id: str, session: Optional[Session] = None) -> List[BlockedResource]:
        with self.db.scope(session) as s:
            rows = s.execute(
                select(ResourceBlock)
                .where(ResourceBlock.tenant_id == tenant_id)
                .order_by(ResourceBlock.created_at, ResourceBlock.resource_id)
            ).scalars().all()
            return [BlockedResource.model_validate(row) for row in rows]

    def delete_tenant(self, tenant_id: str, session: Optional[Session] = None) -> int:
        with self.db.scope(session) as s:
            return s.execute(delete(ResourceBlock).where(ResourceBlock.tenant_id == tenant_id)).rowcount


class ChannelAccessGuard:
    """Allow/deny decisions for (channel, operation) pairs"""

    def __init__(self, store: ChannelAccessStore):
        self.store = store

    def is_allowed(self, resource_id: str, tenant_id: str, operation) -> bool:
        try:
            op = parse_operation(operation)
        except ValueError:
            return False

        block = self.store.get(resource_id, tenant_id)
        if block is None:
            return True  # Not in blocklist = allowed

        if op == Operation.READ:
            return not block.block_read
        return not block.block_write

    def block(self, resource_id: str, tenant_id: str, options: BlockOptions) -> BlockedResource:
        self.store.upsert(resource_id, tenant_id, options)
        logger.info(
            "Channel %s in tenant %s blocked by %s (read=%s, write=%s)",
            resource_id, tenant_id, options.actor, options.block_read, options.block_write,
        )
        return self.store.get(resource_id, tenant_id)

    def unblock(self, resource_id: str, tenant_id: str) -> bool:
        """Remove the block entirely, restoring both read and write access."""
        removed = self.store.delete(resource_id, tenant_id)
        if removed:
            logger.info("Channel %s in tenant %s unblocked", resource_id, tenant_id)
        return removed

    def get_block(self, resource_id: str, tenant_id: str) -> Optional[BlockedResource]:
        return self.store.get(resource_id, tenant_id)

    def list_blocked(self, tenant_id: str) -> List[BlockedResource]:
        return self.store.list_for_tenant(tenant_id)
