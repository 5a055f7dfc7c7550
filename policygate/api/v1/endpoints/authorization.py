"""
Authorization endpoints.

Thin routes over AuthorizationService. Engine errors are rendered by the
application's exception handler with ``access: false``.
"""
from fastapi import APIRouter, Depends, Response, status

from policygate.core.dependencies import get_authorization_service, get_organization_id
from policygate.domain.schemas import (
    AuthorizationResult,
    CheckResponse,
    GrantedActionsRequest,
    GrantedActionsResponse,
)
from policygate.services.authorization import AuthorizationService

router = APIRouter()


@router.get("/check/{user_id}/{action}/{resource:path}", response_model=CheckResponse)
async def check_access(
    user_id: str,
    action: str,
    resource: str,
    organization_id: str = Depends(get_organization_id),
    service: AuthorizationService = Depends(get_authorization_service),
) -> CheckResponse:
    """
    Check whether a user may perform an action on a resource.
    """
    decision = await service.authorize(user_id, organization_id, action, resource)
    return CheckResponse(access=decision.allowed, decision=decision)


@router.get("/explain/{user_id}/{action}/{resource:path}", response_model=AuthorizationResult)
async def explain_access(
    user_id: str,
    action: str,
    resource: str,
    organization_id: str = Depends(get_organization_id),
    service: AuthorizationService = Depends(get_authorization_service),
) -> AuthorizationResult:
    """
    Decide a request and list the statements that matched it.
    """
    return await service.explain(user_id, organization_id, action, resource)


@router.post("/list/{user_id}", response_model=GrantedActionsResponse)
async def list_granted_actions(
    user_id: str,
    body: GrantedActionsRequest,
    organization_id: str = Depends(get_organization_id),
    service: AuthorizationService = Depends(get_authorization_service),
) -> GrantedActionsResponse:
    """
    List the actions a user may perform on a resource.

    When ``actions`` is omitted the reference action catalog is used.
    """
    actions = await service.list_granted_actions(
        user_id, organization_id, body.resource, body.actions
    )
    return GrantedActionsResponse(resource=body.resource, actions=actions)


@router.post("/invalidate/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_user(
    user_id: str,
    service: AuthorizationService = Depends(get_authorization_service),
) -> Response:
    """
    Evict cached policy data of a user.
    """
    await service.invalidate(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/invalidate/organizations/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_organization(
    organization_id: str,
    service: AuthorizationService = Depends(get_authorization_service),
) -> Response:
    """
    Evict cached policy data of every user of an organization.
    """
    await service.invalidate_organization(organization_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
