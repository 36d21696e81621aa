"""
Resource Blocklist Schemas
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class BlockOptions(BaseModel):
    """Admin request to restrict a channel"""
    name: Optional[str] = None
    block_read: bool = True
    block_write: bool = True
    actor: str = Field(..., min_length=1)


class BlockedResource(BaseModel):
    resource_id: str
    tenant_id: str
    name: Optional[str] = None
    block_read: bool
    block_write: bool
    actor: str
    created_at: datetime

    class Config:
        from_attributes = True
