"""
Access API Routes (what the bearer of a credential may do)
"""
from fastapi import APIRouter, Depends

from mcp_gateway.dependencies import get_current_identity, get_facade
from mcp_gateway.schemas.access import AuthorizationDecision, AuthorizeRequest, ToolAuthorizeRequest
from mcp_gateway.schemas.credential import Identity
from mcp_gateway.schemas.permission import EffectivePermissionsResponse, PermittedToolsResponse
from mcp_gateway.services.authorization import AuthorizationFacade

router = APIRouter()


@router.get("/me", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    identity: Identity = Depends(get_current_identity),
    facade: AuthorizationFacade = Depends(get_facade),
):
    """Effective permissions of the credential's user"""
    return EffectivePermissionsResponse(
        user_id=identity.user_id,
        tenant_id=identity.tenant_id,
        permissions=facade.get_effective_permissions(identity.user_id, identity.tenant_id),
    )


@router.post("/authorize", response_model=AuthorizationDecision)
async def authorize(
    data: AuthorizeRequest,
    identity: Identity = Depends(get_current_identity),
    facade: AuthorizationFacade = Depends(get_facade),
):
    """
    Check an operation without performing it

    Returns allowed=false with the denial category rather than an error status.
    """
    return facade.authorize(identity, data.capability, data.operation, data.resource_id)


@router.get("/tools", response_model=PermittedToolsResponse)
async def list_tools(
    identity: Identity = Depends(get_current_identity),
    facade: AuthorizationFacade = Depends(get_facade),
):
    """Tool names the credential may invoke"""
    return PermittedToolsResponse(tools=facade.list_permitted_tools(identity))


@router.post("/tools/authorize", response_model=AuthorizationDecision)
async def authorize_tool(
    data: ToolAuthorizeRequest,
    identity: Identity = Depends(get_current_identity),
    facade: AuthorizationFacade = Depends(get_facade),
):
    """Check a tool invocation against its capability gate and the channel blocklist"""
    return facade.authorize_tool(identity, data.name, data.arguments)
