"""Ticket Service - Ticket lifecycle business logic"""
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING

from ..domain.models import Principal, Ticket, TicketResponse
from ..domain.enums import TicketEventKind, TicketPriority, TicketStatus, AuditAction
from ..domain.errors import ValidationError
from ..engine.audit_writer import AuditWriter
from ..engine.ticket_router import TicketRouter, parse_status
from .notification_service import NotificationFanout
from ..utils.idgen import generate_ticket_id, generate_response_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository
    from ..repositories.ticket_repo import TicketRepository

logger = get_logger(__name__)


class TicketService:
    """
    Service for ticket operations.

    Pattern for every mutation: load, check rules (router), one atomic
    write, then audit and fan-out. Nothing after the write can fail the
    call.
    """

    def __init__(
        self,
        ticket_repo: "TicketRepository" = None,
        principal_repo: "PrincipalRepository" = None,
        router: TicketRouter = None,
        fanout: NotificationFanout = None,
        audit: AuditWriter = None
    ):
        if ticket_repo is None:
            from ..repositories.ticket_repo import TicketRepository
            ticket_repo = TicketRepository()
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.ticket_repo = ticket_repo
        self.router = router or TicketRouter(principal_repo)
        self.fanout = fanout or NotificationFanout(principal_repo=principal_repo)
        self.audit = audit or AuditWriter()

    # =========================================================================
    # Creation
    # =========================================================================

    def create_ticket(
        self,
        actor: Principal,
        name: str,
        email: str,
        subject: str,
        message: str,
        department: Optional[str] = None,
        related_to: Optional[str] = None,
        category: Optional[str] = None,
        priority: Optional[TicketPriority] = None,
        raise_to_superadmin: bool = False
    ) -> Ticket:
        """Create a ticket; routing is decided here once"""
        if not message.strip() or not subject.strip():
            raise ValidationError("Subject and message are required")

        routing = self.router.route_new_ticket(actor, raise_to_superadmin=raise_to_superadmin)

        now = utc_now()
        ticket = Ticket(
            ticket_id=generate_ticket_id(),
            name=name,
            email=email,
            subject=subject,
            department=department,
            related_to=related_to,
            message=message,
            category=category or "Other",
            priority=priority or TicketPriority.MEDIUM,
            status=TicketStatus.OPEN,
            submitted_by=actor.principal_id,
            submitter_role=actor.role,
            assigned_admin_id=routing.assigned_admin_id,
            enterprise_id=routing.enterprise_id,
            is_admin_ticket=routing.is_admin_ticket,
            forwarded_to_superadmin=routing.forwarded_to_superadmin,
            forwarded_at=routing.forwarded_at,
            forwarded_by=routing.forwarded_by,
            created_at=now,
            updated_at=now,
        )
        ticket = self.ticket_repo.create(ticket)

        self.audit.record(
            AuditAction.TICKET_CREATED, actor.principal_id, ticket.ticket_id,
            details={"assigned_admin_id": ticket.assigned_admin_id, "is_admin_ticket": ticket.is_admin_ticket},
            target="ticket", enterprise_id=ticket.enterprise_id
        )
        self.fanout.on_ticket_event(TicketEventKind.CREATED, ticket, actor_id=actor.principal_id)
        if ticket.is_admin_ticket:
            self.fanout.on_ticket_event(TicketEventKind.FORWARDED, ticket, actor_id=actor.principal_id)
        return ticket

    # =========================================================================
    # Updates
    # =========================================================================

    def update_ticket(
        self,
        actor: Principal,
        ticket_id: str,
        status: Optional[str] = None,
        message: Optional[str] = None,
        expected_version: Optional[int] = None
    ) -> Ticket:
        """
        Change status and/or append a response in one write.

        Appending never changes status; a caller wanting both sends both.
        """
        if status is None and message is None:
            raise ValidationError("Provide a status, a message, or both")
        new_status = parse_status(status) if status is not None else None
        if message is not None and not message.strip():
            raise ValidationError("Message must not be empty")

        ticket = self.ticket_repo.get_or_raise(ticket_id)
        if new_status is not None:
            self.router.ensure_can_set_status(actor, ticket)
        response = None
        backfill_role = None
        if message is not None:
            self.router.ensure_can_respond(actor, ticket)
            # Rows written before author roles existed take the acting role
            if any(r.author_role is None for r in ticket.responses):
                backfill_role = actor.role
            now = utc_now()
            response = TicketResponse(
                response_id=generate_response_id(),
                message=message.strip(),
                author_role=actor.role,
                author_id=actor.principal_id,
                created_at=now,
                updated_at=now,
            )

        updated = self.ticket_repo.apply_update(
            ticket_id, status=new_status, response=response,
            expected_version=expected_version, backfill_role=backfill_role
        )

        self.audit.record(
            AuditAction.TICKET_UPDATED, actor.principal_id, ticket_id,
            details={
                "status": new_status.value if new_status else None,
                "response_id": response.response_id if response else None,
            },
            target="ticket", enterprise_id=updated.enterprise_id
        )
        self.fanout.on_ticket_event(
            TicketEventKind.UPDATED, updated, actor_id=actor.principal_id, response=response
        )
        return updated

    def set_status(self, actor: Principal, ticket_id: str, status: str) -> Ticket:
        return self.update_ticket(actor, ticket_id, status=status)

    def append_response(self, actor: Principal, ticket_id: str, message: str) -> Ticket:
        return self.update_ticket(actor, ticket_id, message=message)

    def edit_response(self, actor: Principal, ticket_id: str, response_id: str, message: str) -> Ticket:
        if not message.strip():
            raise ValidationError("Message must not be empty")
        ticket = self.ticket_repo.get_or_raise(ticket_id)
        self.router.ensure_can_edit_responses(actor, ticket)

        updated = self.ticket_repo.edit_response(ticket_id, response_id, message.strip())
        self.audit.record(
            AuditAction.RESPONSE_EDITED, actor.principal_id, ticket_id,
            details={"response_id": response_id}, target="ticket", enterprise_id=updated.enterprise_id
        )
        self.fanout.on_ticket_event(TicketEventKind.UPDATED, updated, actor_id=actor.principal_id)
        return updated

    def remove_response(self, actor: Principal, ticket_id: str, response_id: str) -> Ticket:
        ticket = self.ticket_repo.get_or_raise(ticket_id)
        self.router.ensure_can_edit_responses(actor, ticket)

        updated = self.ticket_repo.remove_response(ticket_id, response_id)
        self.audit.record(
            AuditAction.RESPONSE_REMOVED, actor.principal_id, ticket_id,
            details={"response_id": response_id}, target="ticket", enterprise_id=updated.enterprise_id
        )
        self.fanout.on_ticket_event(TicketEventKind.UPDATED, updated, actor_id=actor.principal_id)
        return updated

    def forward(self, actor: Principal, ticket_id: str) -> Ticket:
        """Forward to superadmins. Repeating it succeeds without changes."""
        ticket = self.ticket_repo.get_or_raise(ticket_id)
        self.router.ensure_can_forward(actor, ticket)

        if ticket.forwarded_to_superadmin:
            return ticket

        updated = self.ticket_repo.mark_forwarded(ticket_id, actor.principal_id, utc_now())
        if updated is None:
            # Another request forwarded it first
            return self.ticket_repo.get_or_raise(ticket_id)

        self.audit.record(
            AuditAction.TICKET_FORWARDED, actor.principal_id, ticket_id,
            target="ticket", enterprise_id=updated.enterprise_id
        )
        self.fanout.on_ticket_event(TicketEventKind.FORWARDED, updated, actor_id=actor.principal_id)
        return updated

    def delete_ticket(self, actor: Principal, ticket_id: str) -> None:
        ticket = self.ticket_repo.get_or_raise(ticket_id)
        self.router.ensure_can_delete(actor, ticket)

        self.ticket_repo.delete(ticket_id)
        self.audit.record(
            AuditAction.TICKET_DELETED, actor.principal_id, ticket_id,
            details={"subject": ticket.subject}, target="ticket", enterprise_id=ticket.enterprise_id
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_ticket(self, actor: Principal, ticket_id: str) -> Ticket:
        ticket = self.ticket_repo.get_or_raise(ticket_id)
        self.router.ensure_can_view(actor, ticket)
        return ticket

    def list_tickets(
        self,
        actor: Principal,
        status: Optional[TicketStatus] = None,
        created_after: Optional[datetime] = None,
        include_all: bool = False,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        scope = self.router.visibility_scope(actor, include_all=include_all)
        return self.ticket_repo.list_tickets(
            scope=scope, status=status, created_after=created_after, skip=skip, limit=limit
        )
