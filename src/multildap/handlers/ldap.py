"""Route handlers for the LDAP debug API.

These routes let an administrator see how the federation of LDAP servers
resolves a user and whether each server is reachable. Both are read-only.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Path
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import NotConfiguredError
from ..models.errors import ErrorResponse
from ..models.identity import LDAPUserView
from ..models.ldap import ServerStatus

router = APIRouter(route_class=SlackRouteErrorHandler, prefix="/api/admin")

__all__ = ["router"]


@router.get(
    "/ldap/status",
    description=(
        "Probe every configured LDAP server concurrently and report whether"
        " each is available. Results are in configuration order."
    ),
    response_model=list[ServerStatus],
    responses={
        400: {"description": "LDAP is not enabled", "model": ErrorResponse},
    },
    summary="LDAP server status",
    tags=["admin"],
)
async def get_ldap_status(
    *,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> list[ServerStatus]:
    if not context.config.enabled:
        raise NotConfiguredError()
    federation = context.factory.create_federation_service()
    return await federation.ping()


@router.get(
    "/ldap/{username}",
    description=(
        "Look up a user in the federation of LDAP servers and show the"
        " attributes, organization roles, and teams that would be assigned"
        " to that user. The first server that knows the user wins."
    ),
    response_model=LDAPUserView,
    response_model_by_alias=True,
    responses={
        400: {
            "description": (
                "LDAP is not enabled or an organization was not found"
            ),
            "model": ErrorResponse,
        },
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Look up LDAP user",
    tags=["admin"],
)
async def get_ldap_user(
    username: Annotated[
        str,
        Path(
            title="Username",
            description="Login of the user to look up",
            examples=["ldap-admin"],
            min_length=1,
        ),
    ],
    *,
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> LDAPUserView:
    if not context.config.enabled:
        raise NotConfiguredError()
    context.rebind_logger(user=username)
    identity_service = context.factory.create_identity_service()
    return await identity_service.get_user(username)
