"""Principal API - admins, sub-users, enterprise details and permission matrices"""
from typing import Dict, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, EmailStr, Field

from ..deps import get_current_principal_dep, get_principal_service, require_permission
from ...domain.models import (
    Principal, EnterpriseProfile, LegacyPermissions, ModulePermissions
)
from ...domain.enums import Role, Module, Action, Decision
from ...services.principal_service import PrincipalService

router = APIRouter()
permissions_router = APIRouter()


# =============================================================================
# Schemas
# =============================================================================

class CreateAdminRequest(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = None
    enterprise: EnterpriseProfile
    permissions: LegacyPermissions = Field(default_factory=LegacyPermissions)


class CreateUserRequest(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=1, max_length=200)
    phone: Optional[str] = None
    department: Optional[str] = None
    custom_permissions: Dict[str, ModulePermissions] = Field(default_factory=dict)


class PermissionMatrixRequest(BaseModel):
    custom_permissions: Dict[str, ModulePermissions]


class AssignRoleRequest(BaseModel):
    role_id: str


class PrincipalOut(BaseModel):
    principal_id: str
    email: str
    role: Role
    full_name: str
    created_by: Optional[str] = None
    enterprise: Optional[EnterpriseProfile] = None
    permissions: LegacyPermissions
    custom_permissions: Dict[str, ModulePermissions]
    role_id: Optional[str] = None
    products: Dict[str, bool]

    @classmethod
    def from_principal(cls, principal: Principal) -> "PrincipalOut":
        return cls(
            principal_id=principal.principal_id,
            email=principal.email,
            role=principal.role,
            full_name=principal.display_name,
            created_by=principal.created_by,
            enterprise=principal.enterprise,
            permissions=principal.permissions,
            custom_permissions=principal.custom_permissions,
            role_id=principal.profile.role_id,
            products={g.product_id: g.has_access for g in principal.product_access},
        )


class PermissionCheckOut(BaseModel):
    module: Module
    action: Action
    decision: Decision
    rule: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/me", response_model=PrincipalOut)
async def get_me(principal: Principal = Depends(get_current_principal_dep)):
    return PrincipalOut.from_principal(principal)


@router.post("/admins", response_model=PrincipalOut, status_code=status.HTTP_201_CREATED)
async def create_admin(
    request: CreateAdminRequest,
    actor: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    """Superadmin only; enterprise id must be unique (409 ALREADY_EXISTS)"""
    admin = service.create_admin(
        actor,
        email=request.email,
        full_name=request.full_name,
        enterprise=request.enterprise,
        permissions=request.permissions,
        phone=request.phone,
    )
    return PrincipalOut.from_principal(admin)


@router.post("/users", response_model=PrincipalOut, status_code=status.HTTP_201_CREATED)
async def create_sub_user(
    request: CreateUserRequest,
    actor: Principal = Depends(require_permission(Module.USERS, Action.ADD)),
    service: PrincipalService = Depends(get_principal_service)
):
    """Requires users:add. The new user joins the creator's enterprise."""
    user = service.create_sub_user(
        actor,
        email=request.email,
        full_name=request.full_name,
        custom_permissions=request.custom_permissions,
        department=request.department,
        phone=request.phone,
    )
    return PrincipalOut.from_principal(user)


@router.put("/{principal_id}/enterprise", response_model=PrincipalOut)
async def update_enterprise(
    principal_id: str,
    request: EnterpriseProfile,
    actor: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    return PrincipalOut.from_principal(service.update_enterprise(actor, principal_id, request))


@router.put("/{principal_id}/permissions", response_model=PrincipalOut)
async def update_permissions(
    principal_id: str,
    request: PermissionMatrixRequest,
    actor: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    updated = service.update_permission_matrix(actor, principal_id, request.custom_permissions)
    return PrincipalOut.from_principal(updated)


@router.put("/{principal_id}/role", response_model=PrincipalOut)
async def assign_role(
    principal_id: str,
    request: AssignRoleRequest,
    actor: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    """Replaces the sub-user's matrix with the role's and links the role"""
    return PrincipalOut.from_principal(service.assign_role(actor, principal_id, request.role_id))


@router.delete("/{principal_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_principal(
    principal_id: str,
    actor: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    """Blocked with 409 while the principal has tickets that are not Closed"""
    service.delete_principal(actor, principal_id)


@permissions_router.get("/check", response_model=PermissionCheckOut)
async def check_permission(
    module: Module = Query(...),
    action: Action = Query(...),
    principal: Principal = Depends(get_current_principal_dep),
    service: PrincipalService = Depends(get_principal_service)
):
    """Decision for the caller, with the rule that produced it"""
    resolution = service.check_permission(principal, module, action)
    return PermissionCheckOut(module=module, action=action, decision=resolution.decision, rule=resolution.rule)
