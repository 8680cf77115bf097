"""Shared dependencies: injected services, bearer authentication and role gates."""

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backoffice.core.config import Settings
from backoffice.core.errors import ForbiddenError, UnauthorizedError
from backoffice.core.security import verify_access_token
from backoffice.models.user import Role
from backoffice.realtime.gateway import RealtimeGateway
from backoffice.schemas.auth import Principal
from backoffice.services.credentials import CredentialService

security = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_credentials(request: Request) -> CredentialService:
    return request.app.state.credentials


def get_gateway(request: Request) -> RealtimeGateway:
    return request.app.state.gateway


def authenticate(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> Principal:
    """Dependency: require a valid Bearer access token; attach the Principal to request.state."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise UnauthorizedError("Authentication token is missing")
    principal = verify_access_token(credentials.credentials, settings)
    request.state.principal = principal
    return principal


def require_roles(*allowed: Role) -> Callable[[Request], Principal]:
    """
    Build a dependency that admits only the given roles.

    Must run after authenticate (list it first in the route's dependencies); a
    request without a principal is rejected with 401, not 403.
    """
    allowed_roles = frozenset(Role(r) for r in allowed)

    def _check(request: Request) -> Principal:
        principal = getattr(request.state, "principal", None)
        if principal is None:
            raise UnauthorizedError()
        if principal.role not in allowed_roles:
            raise ForbiddenError()
        return principal

    return _check


CurrentPrincipal = Annotated[Principal, Depends(authenticate)]
Credentials = Annotated[CredentialService, Depends(get_credentials)]
Gateway = Annotated[RealtimeGateway, Depends(get_gateway)]
