"""
Installation Schemas
"""
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class InstallationRecord(BaseModel):
    """Installation as produced by the OAuth handshake"""
    workspace_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    is_enterprise_install: bool = False
    bot_token: str = Field(..., min_length=1)
    bot_id: Optional[str] = None
    bot_user_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


class InstallationQuery(BaseModel):
    """Lookup key for fetch/delete, mirrors what platform events carry"""
    workspace_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    is_enterprise_install: bool = False


class ExecutionCredential(BaseModel):
    """Downstream service token to act on behalf of a tenant"""
    bot_token: str
    workspace_id: Optional[str] = None
    enterprise_id: Optional[str] = None

    def __repr__(self):
        # Never render the token itself
        return f"ExecutionCredential(workspace_id={self.workspace_id!r}, enterprise_id={self.enterprise_id!r})"

    __str__ = __repr__
