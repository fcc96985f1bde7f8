"""
Ticket Lifecycle Routes

Status changes, responses, forwarding and deletion.
"""

from fastapi import APIRouter, Depends

from ...deps import get_current_principal_dep, get_ticket_service
from ....domain.models import Principal
from ....services.ticket_service import TicketService
from .schemas import (
    UpdateTicketRequest, StatusRequest, ResponseMessageRequest, TicketOut, ActionResponse
)

router = APIRouter()


@router.put("/{ticket_id}", response_model=TicketOut)
async def update_ticket(
    ticket_id: str,
    request: UpdateTicketRequest,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """
    Update status and/or add a response

    Superadmins and the assigned admin may change status; the submitter
    may only add follow-up messages.
    """
    ticket = service.update_ticket(
        principal,
        ticket_id,
        status=request.status,
        message=request.message,
        expected_version=request.expected_version,
    )
    return TicketOut.from_ticket(ticket)


@router.put("/{ticket_id}/status", response_model=TicketOut)
async def set_ticket_status(
    ticket_id: str,
    request: StatusRequest,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    return TicketOut.from_ticket(service.set_status(principal, ticket_id, request.status))


@router.post("/{ticket_id}/responses", response_model=TicketOut)
async def add_response(
    ticket_id: str,
    request: ResponseMessageRequest,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    return TicketOut.from_ticket(service.append_response(principal, ticket_id, request.message))


@router.put("/{ticket_id}/responses/{response_id}", response_model=TicketOut)
async def edit_response(
    ticket_id: str,
    response_id: str,
    request: ResponseMessageRequest,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """Superadmin only"""
    return TicketOut.from_ticket(service.edit_response(principal, ticket_id, response_id, request.message))


@router.delete("/{ticket_id}/responses/{response_id}", response_model=TicketOut)
async def remove_response(
    ticket_id: str,
    response_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """Superadmin only"""
    return TicketOut.from_ticket(service.remove_response(principal, ticket_id, response_id))


@router.post("/{ticket_id}/forward", response_model=TicketOut)
async def forward_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    """Forward to superadmins; repeating the call is a no-op"""
    return TicketOut.from_ticket(service.forward(principal, ticket_id))


@router.delete("/{ticket_id}", response_model=ActionResponse)
async def delete_ticket(
    ticket_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    service: TicketService = Depends(get_ticket_service)
):
    service.delete_ticket(principal, ticket_id)
    return ActionResponse(success=True, message="Ticket deleted")
