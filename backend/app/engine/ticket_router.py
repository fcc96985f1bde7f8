"""Ticket Router - routing at creation and transition/ownership rules"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, TYPE_CHECKING

from ..domain.models import Principal, Ticket
from ..domain.enums import Role, TicketStatus
from ..domain.errors import (
    ForbiddenError, InvalidStatusError, EnterpriseNotConfiguredError
)
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoutingDecision:
    """Routing fields fixed at creation and never re-derived"""
    assigned_admin_id: Optional[str]
    enterprise_id: Optional[str]
    is_admin_ticket: bool = False
    forwarded_to_superadmin: bool = False
    forwarded_at: Optional[datetime] = None
    forwarded_by: Optional[str] = None


def parse_status(value: Any) -> TicketStatus:
    """Coerce to TicketStatus or raise InvalidStatusError"""
    if isinstance(value, TicketStatus):
        return value
    try:
        return TicketStatus(value)
    except ValueError:
        raise InvalidStatusError(
            f"Invalid status value: {value!r}",
            details={"allowed": [s.value for s in TicketStatus]}
        )


class TicketRouter:
    """
    Ticket routing and ownership rules.

    Every check here runs before the corresponding storage write.
    """

    def __init__(self, principal_repo: "PrincipalRepository" = None):
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.principal_repo = principal_repo

    # =========================================================================
    # Creation
    # =========================================================================

    def resolve_enterprise_id(self, principal: Principal) -> Optional[str]:
        """Own enterprise id, else the creator's"""
        if principal.enterprise_id:
            return principal.enterprise_id
        if principal.created_by:
            creator = self.principal_repo.get(principal.created_by)
            if creator and creator.enterprise_id:
                return creator.enterprise_id
        return None

    def route_new_ticket(self, submitter: Principal, raise_to_superadmin: bool = False) -> RoutingDecision:
        if submitter.role == Role.USER:
            enterprise_id = self.resolve_enterprise_id(submitter)
            if not enterprise_id:
                raise EnterpriseNotConfiguredError(
                    "Your account has no enterprise. Please contact your administrator.",
                    details={"principal_id": submitter.principal_id}
                )
            admin = self.principal_repo.find_enterprise_admin(enterprise_id)
            if admin is None:
                raise EnterpriseNotConfiguredError(
                    details={"principal_id": submitter.principal_id, "enterprise_id": enterprise_id}
                )
            logger.info(
                f"Routing ticket from {submitter.principal_id} to admin {admin.principal_id}",
                extra={"principal_id": submitter.principal_id, "enterprise_id": enterprise_id}
            )
            return RoutingDecision(assigned_admin_id=admin.principal_id, enterprise_id=enterprise_id)

        if submitter.role == Role.ADMIN and raise_to_superadmin:
            return RoutingDecision(
                assigned_admin_id=None,
                enterprise_id=submitter.enterprise_id,
                is_admin_ticket=True,
                forwarded_to_superadmin=True,
                forwarded_at=utc_now(),
                forwarded_by=submitter.principal_id,
            )

        # Admin without the raise intent, or a superadmin: self-service record
        return RoutingDecision(
            assigned_admin_id=submitter.principal_id,
            enterprise_id=submitter.enterprise_id,
        )

    # =========================================================================
    # Transitions
    # =========================================================================

    def can_manage(self, actor: Principal, ticket: Ticket) -> bool:
        """Status changes and staff responses"""
        if actor.role == Role.SUPERADMIN:
            return True
        return (
            actor.role == Role.ADMIN
            and not ticket.is_admin_ticket
            and ticket.assigned_admin_id == actor.principal_id
        )

    def ensure_can_view(self, actor: Principal, ticket: Ticket) -> None:
        if actor.role == Role.SUPERADMIN or ticket.submitted_by == actor.principal_id:
            return
        if actor.role == Role.ADMIN and (
            ticket.assigned_admin_id == actor.principal_id
            or (ticket.enterprise_id and ticket.enterprise_id == actor.enterprise_id)
        ):
            return
        raise ForbiddenError("You cannot view this ticket", details={"ticket_id": ticket.ticket_id})

    def ensure_can_set_status(self, actor: Principal, ticket: Ticket) -> None:
        if not self.can_manage(actor, ticket):
            raise ForbiddenError(
                "Admins can only update tickets assigned to them from users",
                details={"ticket_id": ticket.ticket_id}
            )

    def ensure_can_respond(self, actor: Principal, ticket: Ticket) -> None:
        """Staff who may manage the ticket, or its submitter adding a follow-up"""
        if self.can_manage(actor, ticket) or ticket.submitted_by == actor.principal_id:
            return
        raise ForbiddenError(
            "You cannot respond to this ticket",
            details={"ticket_id": ticket.ticket_id}
        )

    def ensure_can_edit_responses(self, actor: Principal, ticket: Ticket) -> None:
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError(
                "Only superadmins can edit or remove responses",
                details={"ticket_id": ticket.ticket_id}
            )

    def ensure_can_forward(self, actor: Principal, ticket: Ticket) -> None:
        if (
            actor.role != Role.ADMIN
            or not ticket.enterprise_id
            or actor.enterprise_id != ticket.enterprise_id
        ):
            raise ForbiddenError(
                "Only the enterprise admin can forward this ticket",
                details={"ticket_id": ticket.ticket_id}
            )

    def can_delete(self, actor: Principal, ticket: Ticket) -> bool:
        if actor.role == Role.SUPERADMIN:
            return True
        return (
            actor.role == Role.ADMIN
            and not ticket.is_admin_ticket
            and not ticket.forwarded_to_superadmin
            and ticket.assigned_admin_id == actor.principal_id
        )

    def ensure_can_delete(self, actor: Principal, ticket: Ticket) -> None:
        if not self.can_delete(actor, ticket):
            raise ForbiddenError(
                "You cannot delete this ticket",
                details={"ticket_id": ticket.ticket_id}
            )

    # =========================================================================
    # Listing
    # =========================================================================

    def visibility_scope(self, actor: Principal, include_all: bool = False) -> Dict[str, Any]:
        """Mongo filter for the tickets an actor may list"""
        if actor.role == Role.SUPERADMIN:
            return {} if include_all else {"forwarded_to_superadmin": True}
        if actor.role == Role.ADMIN:
            owners = [{"assigned_admin_id": actor.principal_id}]
            if actor.enterprise_id:
                owners.append({"enterprise_id": actor.enterprise_id})
            return {"$or": owners}
        return {"submitted_by": actor.principal_id, "is_admin_ticket": False}
