"""Domain Models - Pydantic schemas for all entities"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, EmailStr, ConfigDict, model_validator

from .enums import (
    Role, Action, ProductCode, TicketStatus, TicketPriority, AuditAction, InAppNotificationCategory
)


# Legacy boolean flag per product, keyed by product id
LEGACY_FLAG_BY_PRODUCT: Dict[str, str] = {
    ProductCode.CRM.value: "crm_access",
    ProductCode.HRM.value: "hrm_access",
    ProductCode.JOB_PORTAL.value: "job_portal_access",
    ProductCode.JOB_BOARD.value: "job_board_access",
    ProductCode.PROJECT_MANAGEMENT.value: "project_management_access",
}


# ============================================================================
# Permissions
# ============================================================================

class LegacyPermissions(BaseModel):
    """Boolean per-product flags that predate the permission matrix"""
    crm_access: bool = False
    hrm_access: bool = False
    job_portal_access: bool = False
    job_board_access: bool = False
    project_management_access: bool = False

    def flag_for(self, product_id: str) -> bool:
        field_name = LEGACY_FLAG_BY_PRODUCT.get(product_id)
        return bool(field_name and getattr(self, field_name))


class ModulePermissions(BaseModel):
    """One row of the custom permission matrix"""
    view: bool = False
    add: bool = False
    edit: bool = False
    delete: bool = False

    def allows(self, action: Action) -> bool:
        return bool(getattr(self, action.value, False))


# ============================================================================
# Product Access Ledger
# ============================================================================

class UsageSummary(BaseModel):
    daily_active_users: int = 0
    monthly_active_users: int = 0
    total_actions: int = 0


class ProductAccessGrant(BaseModel):
    """Grant record; one per (principal, product), never deleted"""
    product_id: str
    has_access: bool = False
    granted_at: Optional[datetime] = None
    granted_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[str] = None
    access_token: Optional[str] = None
    access_link: Optional[str] = None
    access_url: Optional[str] = None
    last_accessed: Optional[datetime] = None
    access_count: int = 0
    usage_summary: UsageSummary = Field(default_factory=UsageSummary)
    updated_at: Optional[datetime] = None


# ============================================================================
# Principals
# ============================================================================

class EnterpriseProfile(BaseModel):
    """Tenant identity carried by an admin and copied onto its sub-users"""
    enterprise_id: str = Field(..., min_length=1)
    company_name: Optional[str] = None
    company_email: Optional[EmailStr] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    industry: Optional[str] = None
    login_link: Optional[str] = None


class PrincipalProfile(BaseModel):
    full_name: str
    phone: Optional[str] = None
    department: Optional[str] = None
    role_id: Optional[str] = None  # enterprise role the matrix was copied from
    is_active: bool = True


class Principal(BaseModel):
    """An account: superadmin, enterprise admin, or sub-user"""
    model_config = ConfigDict(extra="ignore")

    principal_id: str
    email: EmailStr
    role: Role
    created_by: Optional[str] = None
    profile: PrincipalProfile
    enterprise: Optional[EnterpriseProfile] = None
    permissions: LegacyPermissions = Field(default_factory=LegacyPermissions)
    custom_permissions: Dict[str, ModulePermissions] = Field(default_factory=dict)
    product_access: List[ProductAccessGrant] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _user_has_creator(self) -> "Principal":
        if self.role == Role.USER and not self.created_by:
            raise ValueError("user principals require created_by")
        return self

    @property
    def enterprise_id(self) -> Optional[str]:
        return self.enterprise.enterprise_id if self.enterprise else None

    @property
    def display_name(self) -> str:
        return self.profile.full_name

    def grant_for(self, product_id: str) -> Optional[ProductAccessGrant]:
        for grant in self.product_access:
            if grant.product_id == product_id:
                return grant
        return None

    def has_active_grant(self, product_id: str) -> bool:
        grant = self.grant_for(product_id)
        return bool(grant and grant.has_access)


# ============================================================================
# Tickets
# ============================================================================

class TicketResponse(BaseModel):
    """Conversation entry on a ticket"""
    response_id: str
    message: str
    author_role: Optional[Role] = None  # None only on rows written before roles were tracked
    author_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class Ticket(BaseModel):
    """Support ticket with its routing flags"""
    model_config = ConfigDict(extra="ignore")

    ticket_id: str
    name: str
    email: EmailStr
    subject: str
    department: Optional[str] = None
    related_to: Optional[str] = None
    message: str
    category: str = "Other"
    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN

    submitted_by: str
    submitter_role: Role
    assigned_admin_id: Optional[str] = None
    enterprise_id: Optional[str] = None

    is_admin_ticket: bool = False
    forwarded_to_superadmin: bool = False
    forwarded_at: Optional[datetime] = None
    forwarded_by: Optional[str] = None

    responses: List[TicketResponse] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime
    version: int = 1


# ============================================================================
# Audit
# ============================================================================

class AuditEvent(BaseModel):
    """Audit event (append-only)"""
    audit_event_id: str
    action: AuditAction
    actor_id: Optional[str] = None
    target: Optional[str] = None
    target_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    correlation_id: Optional[str] = None
    timestamp: datetime


# ============================================================================
# Enterprise Roles
# ============================================================================

class EnterpriseRole(BaseModel):
    """Named permission matrix an enterprise assigns to its sub-users"""
    model_config = ConfigDict(extra="ignore")

    role_id: str
    enterprise_id: str
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    permissions: Dict[str, ModulePermissions] = Field(default_factory=dict)
    created_by: str
    created_at: datetime
    updated_at: datetime


# ============================================================================
# In-App Notifications
# ============================================================================

class InAppNotification(BaseModel):
    """Stored notification; survives the recipient being offline"""
    model_config = ConfigDict(extra="ignore")

    notification_id: str
    recipient_id: str
    category: InAppNotificationCategory
    title: str
    message: str
    ticket_id: Optional[str] = None
    actor_id: Optional[str] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: datetime
    expires_at: Optional[datetime] = None
