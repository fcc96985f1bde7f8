"""
Ticket CRUD Routes

Create, read, list ticket endpoints.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, status

from ...deps import get_current_principal_dep, get_ticket_service
from ....domain.models import Principal
from ....domain.enums import TicketStatus
from ....services.ticket_service import TicketService
from ....utils.time import parse_iso
from ....domain.errors import ValidationError
from ....utils.logger import get_logger
from .schemas import CreateTicketRequest, TicketListResponse, TicketOut

logger = get_logger(__name__)
router = APIRouter()


@router.post("/", response_model=TicketOut, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    request: CreateTicketRequest,
    x_force_admin_ticket: Optional[str] = Header(None, alias="X-Force-Admin-Ticket"),
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """
    Create a ticket

    Sub-users' tickets go to their enterprise admin. Admins raise a ticket
    to the superadmins with `force_admin_ticket` (or the
    X-Force-Admin-Ticket header); without it the ticket is assigned to
    themselves.
    """
    raise_intent = request.force_admin_ticket or (x_force_admin_ticket or "").lower() == "true"
    ticket = service.create_ticket(
        actor=principal,
        name=request.name,
        email=request.email,
        subject=request.subject,
        message=request.message,
        department=request.department,
        related_to=request.related_to,
        category=request.category,
        priority=request.priority,
        raise_to_superadmin=raise_intent,
    )
    logger.info(
        f"Created ticket: {ticket.ticket_id}",
        extra={"ticket_id": ticket.ticket_id, "principal_id": principal.principal_id}
    )
    return TicketOut.from_ticket(ticket)


@router.get("/", response_model=TicketListResponse)
async def list_tickets(
    status: Optional[TicketStatus] = Query(None, description="Filter by status"),
    since: Optional[str] = Query(None, description="Only tickets created at or after this ISO timestamp"),
    include_all: bool = Query(False, description="Superadmin: include tickets that were not forwarded"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """
    List tickets visible to the caller

    - superadmin: forwarded tickets (all with include_all)
    - admin: tickets assigned to it or in its enterprise
    - user: its own tickets
    """
    created_after = None
    if since:
        try:
            created_after = parse_iso(since)
        except (ValueError, OverflowError):
            raise ValidationError(f"Invalid timestamp: {since}")

    tickets = service.list_tickets(
        principal,
        status=status,
        created_after=created_after,
        include_all=include_all,
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return TicketListResponse(
        items=[TicketOut.from_ticket(t) for t in tickets],
        page=page,
        page_size=page_size,
    )


@router.get("/{ticket_id}", response_model=TicketOut)
async def get_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """Get a ticket with its responses"""
    return TicketOut.from_ticket(service.get_ticket(principal, ticket_id))
