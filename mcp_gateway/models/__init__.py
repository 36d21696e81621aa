"""
Models package - Import all models so they register on Base.metadata
"""
# Import Base first
from mcp_gateway.database import Base

from mcp_gateway.models.permission import TenantDefaults, UserPermission
from mcp_gateway.models.credential import Credential
from mcp_gateway.models.installation import Installation
from mcp_gateway.models.resource_block import ResourceBlock

__all__ = [
    "Base",
    "TenantDefaults",
    "UserPermission",
    "Credential",
    "Installation",
    "ResourceBlock",
]
