"""API Dependencies - Common dependencies for routes"""
from typing import Callable, Optional
from fastapi import Depends, Header, HTTPException, status

from ..domain.models import Principal
from ..domain.enums import Module, Action
from ..domain.errors import InvalidCredentialError
from ..engine.permission_resolver import get_permission_resolver
from ..services.access_service import AccessService
from ..services.principal_service import PrincipalService
from ..services.ticket_service import TicketService
from ..services.role_service import RoleService
from ..repositories.inapp_notification_repo import InAppNotificationRepository
from ..utils.jwt import CredentialVerifier, get_credential_verifier


async def get_current_principal_dep(
    authorization: Optional[str] = Header(None),
    verifier: CredentialVerifier = Depends(get_credential_verifier)
) -> Principal:
    """
    Dependency to resolve the calling principal from the Authorization header

    Raises:
        HTTPException: 401 if token is missing, invalid, or unknown
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": {"code": "INVALID_CREDENTIAL", "message": "Authorization header is missing"}},
            headers={"WWW-Authenticate": "Bearer"}
        )

    try:
        return verifier.verify(authorization)
    except InvalidCredentialError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.to_dict(),
            headers={"WWW-Authenticate": "Bearer"}
        )


def require_permission(module: Module, action: Action) -> Callable:
    """Dependency factory: 403 unless authorize(principal, module, action) allows"""

    async def _dependency(principal: Principal = Depends(get_current_principal_dep)) -> Principal:
        get_permission_resolver().require(principal, module, action)
        return principal

    return _dependency


# Service providers (overridden in tests via app.dependency_overrides)

def get_ticket_service() -> TicketService:
    return TicketService()


def get_access_service() -> AccessService:
    return AccessService()


def get_principal_service() -> PrincipalService:
    return PrincipalService()


def get_role_service() -> RoleService:
    return RoleService()


def get_notification_repo() -> InAppNotificationRepository:
    return InAppNotificationRepository()
