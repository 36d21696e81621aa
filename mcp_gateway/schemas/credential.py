"""
Credential Schemas
"""
from pydantic import BaseModel


class Identity(BaseModel):
    """Stable identity carried by a verified credential"""
    user_id: str
    tenant_id: str
    jti: str


class TokenClaims(BaseModel):
    """Claims embedded in every credential JWT"""
    sub: str
    tenant: str
    jti: str
    iat: int
    exp: int
