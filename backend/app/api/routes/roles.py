"""Enterprise Role API - named permission matrices"""
from datetime import datetime
from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from ..deps import get_current_principal_dep, get_role_service
from ...domain.models import Principal, EnterpriseRole, ModulePermissions
from ...services.role_service import RoleService

router = APIRouter()


class CreateRoleRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    permissions: Dict[str, ModulePermissions] = Field(default_factory=dict)
    enterprise_id: Optional[str] = None


class UpdateRoleRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permissions: Optional[Dict[str, ModulePermissions]] = None


class RoleOut(BaseModel):
    role_id: str
    enterprise_id: str
    name: str
    description: str
    permissions: Dict[str, ModulePermissions]
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_role(cls, role: EnterpriseRole) -> "RoleOut":
        return cls(**role.model_dump())


@router.post("", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def create_role(
    request: CreateRoleRequest,
    actor: Principal = Depends(get_current_principal_dep),
    service: RoleService = Depends(get_role_service)
):
    """Superadmins must name the enterprise; everyone else creates in their own"""
    role = service.create_role(
        actor,
        name=request.name,
        permissions=request.permissions,
        description=request.description,
        enterprise_id=request.enterprise_id,
    )
    return RoleOut.from_role(role)


@router.get("", response_model=List[RoleOut])
async def list_roles(
    enterprise_id: Optional[str] = Query(None),
    actor: Principal = Depends(get_current_principal_dep),
    service: RoleService = Depends(get_role_service)
):
    return [RoleOut.from_role(r) for r in service.list_roles(actor, enterprise_id=enterprise_id)]


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: str,
    request: UpdateRoleRequest,
    actor: Principal = Depends(get_current_principal_dep),
    service: RoleService = Depends(get_role_service)
):
    """A new matrix is copied to every user assigned to the role"""
    role = service.update_role(
        actor, role_id,
        name=request.name,
        description=request.description,
        permissions=request.permissions,
    )
    return RoleOut.from_role(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    actor: Principal = Depends(get_current_principal_dep),
    service: RoleService = Depends(get_role_service)
):
    service.delete_role(actor, role_id)
