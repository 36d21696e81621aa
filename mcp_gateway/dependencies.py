"""
Common Dependencies for FastAPI Routes
"""
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Callable, Optional

from mcp_gateway.config.capabilities import Operation
from mcp_gateway.schemas.credential import Identity
from mcp_gateway.services.authorization import AuthorizationFacade

# auto_error=False so a missing header becomes MissingCredentialError (401)
security = HTTPBearer(auto_error=False)


def get_facade(request: Request) -> AuthorizationFacade:
    """The facade built once at startup"""
    return request.app.state.facade


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    facade: AuthorizationFacade = Depends(get_facade),
) -> Identity:
    """
    Dependency to get the authenticated identity from the bearer credential
    """
    token = credentials.credentials if credentials else None
    return facade.authenticate(token)


def require_capability(capability_key: str, operation: Operation) -> Callable:
    """
    Dependency factory to require a capability flag.

    Usage:
        identity: Identity = Depends(require_capability("chat", Operation.WRITE))
        or
        @router.post("/", dependencies=[Depends(require_capability("channels", Operation.READ))])
    """
    async def capability_checker(
        identity: Identity = Depends(get_current_identity),
        facade: AuthorizationFacade = Depends(get_facade),
    ) -> Identity:
        facade.require(identity, capability_key, operation)
        return identity

    return capability_checker
