"""
Ticket Schemas

Request and response models for ticket API endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

from ....domain.enums import Role, TicketPriority, TicketStatus
from ....domain.models import Ticket


# =============================================================================
# Requests
# =============================================================================

class CreateTicketRequest(BaseModel):
    """Request to create a new ticket"""
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    subject: str = Field(..., min_length=1, max_length=500)
    department: str = Field(..., min_length=1, max_length=200)
    related_to: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1, max_length=10000)
    category: Optional[str] = Field(None, max_length=100)
    priority: Optional[TicketPriority] = None
    force_admin_ticket: bool = Field(
        False, description="Admins only: raise the ticket to the superadmins"
    )


class UpdateTicketRequest(BaseModel):
    """Status change and/or a new response; either or both"""
    status: Optional[str] = None
    message: Optional[str] = Field(None, max_length=10000)
    expected_version: Optional[int] = Field(None, ge=1)


class StatusRequest(BaseModel):
    status: str


class ResponseMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=10000)


# =============================================================================
# Responses
# =============================================================================

class TicketResponseOut(BaseModel):
    response_id: str
    message: str
    author_role: Optional[Role] = None
    author_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class TicketOut(BaseModel):
    ticket_id: str
    name: str
    email: str
    subject: str
    department: Optional[str] = None
    related_to: Optional[str] = None
    message: str
    category: str
    priority: TicketPriority
    status: TicketStatus
    submitted_by: str
    assigned_admin_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    is_admin_ticket: bool
    forwarded_to_superadmin: bool
    forwarded_at: Optional[datetime] = None
    forwarded_by: Optional[str] = None
    responses: List[TicketResponseOut]
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_ticket(cls, ticket: Ticket) -> "TicketOut":
        return cls.model_validate(ticket.model_dump())


class TicketListResponse(BaseModel):
    items: List[TicketOut]
    page: int
    page_size: int


class ActionResponse(BaseModel):
    success: bool
    message: str
