"""
Authorization request/decision schemas
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field

from mcp_gateway.config.capabilities import Operation


class AuthorizationDecision(BaseModel):
    """Allow, or Deny with a user-visible reason"""
    allowed: bool
    reason: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, error) -> "AuthorizationDecision":
        return cls(allowed=False, reason=error.message, code=error.reason)


class AuthorizeRequest(BaseModel):
    capability: str = Field(..., min_length=1)
    operation: Operation
    resource_id: Optional[str] = None


class ToolAuthorizeRequest(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)
