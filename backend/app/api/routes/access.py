"""Product Access API - grant, revoke, regenerate and resolve access links"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_current_principal_dep, get_access_service
from ...domain.models import Principal, ProductAccessGrant
from ...services.access_service import AccessService
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()
public_router = APIRouter()


class GrantOut(BaseModel):
    product_id: str
    has_access: bool
    granted_at: Optional[datetime] = None
    granted_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    access_link: Optional[str] = None
    access_url: Optional[str] = None
    last_accessed: Optional[datetime] = None
    access_count: int = 0

    @classmethod
    def from_grant(cls, grant: ProductAccessGrant) -> "GrantOut":
        return cls.model_validate(grant.model_dump())


class ResolvedAccessOut(BaseModel):
    principal_id: str
    full_name: str
    enterprise_id: Optional[str] = None
    company_name: Optional[str] = None
    product_id: str
    access_token: Optional[str] = None
    access_count: int


@router.post("/{principal_id}/products/{product_id}/grant", response_model=GrantOut)
async def grant_product_access(
    principal_id: str,
    product_id: str,
    actor: Principal = Depends(get_current_principal_dep),
    service: AccessService = Depends(get_access_service)
):
    return GrantOut.from_grant(service.grant(actor, principal_id, product_id))


@router.post("/{principal_id}/products/{product_id}/revoke", response_model=GrantOut)
async def revoke_product_access(
    principal_id: str,
    product_id: str,
    actor: Principal = Depends(get_current_principal_dep),
    service: AccessService = Depends(get_access_service)
):
    return GrantOut.from_grant(service.revoke(actor, principal_id, product_id))


@router.post("/{principal_id}/products/{product_id}/regenerate", response_model=GrantOut)
async def regenerate_access_link(
    principal_id: str,
    product_id: str,
    actor: Principal = Depends(get_current_principal_dep),
    service: AccessService = Depends(get_access_service)
):
    """New token and link for an active grant; 409 NOT_GRANTED otherwise"""
    return GrantOut.from_grant(service.regenerate_link(actor, principal_id, product_id))


@public_router.get("/access/{access_link}", response_model=ResolvedAccessOut)
async def resolve_access_link(
    access_link: str,
    service: AccessService = Depends(get_access_service)
):
    """
    Resolve a tenant access link (no authentication)

    Revoked grants answer 403 ACCESS_REVOKED.
    """
    principal, grant = service.resolve_by_link(access_link)
    logger.info(
        f"Access link used for {grant.product_id}",
        extra={"principal_id": principal.principal_id, "product_id": grant.product_id}
    )
    return ResolvedAccessOut(
        principal_id=principal.principal_id,
        full_name=principal.display_name,
        enterprise_id=principal.enterprise_id,
        company_name=principal.enterprise.company_name if principal.enterprise else None,
        product_id=grant.product_id,
        access_token=grant.access_token,
        access_count=grant.access_count,
    )
