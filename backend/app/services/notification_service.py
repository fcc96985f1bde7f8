"""Notification Fan-out - push ticket events to interested principals"""
from typing import Any, Dict, List, Optional, Set, Tuple, TYPE_CHECKING

from ..domain.models import Ticket, TicketResponse
from ..domain.enums import Role, TicketEventKind, InAppNotificationCategory
from ..utils.time import format_iso
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from .channel_registry import ChannelRegistry
    from ..repositories.inapp_notification_repo import InAppNotificationRepository
    from ..repositories.principal_repo import PrincipalRepository

logger = get_logger(__name__)


# kind -> (event for admins/superadmins, event for the submitter)
EVENT_NAMES: Dict[TicketEventKind, Tuple[str, str]] = {
    TicketEventKind.CREATED: ("ticket_created", "ticket_created_by_user"),
    TicketEventKind.UPDATED: ("ticket_updated", "ticket_updated_for_user"),
    TicketEventKind.FORWARDED: ("ticket_forwarded", "ticket_forwarded_to_superadmin"),
}


def ticket_payload(ticket: Ticket) -> Dict[str, Any]:
    """Event body sent over the channel"""
    return {
        "ticket_id": ticket.ticket_id,
        "subject": ticket.subject,
        "status": ticket.status.value,
        "priority": ticket.priority.value,
        "enterprise_id": ticket.enterprise_id,
        "assigned_admin_id": ticket.assigned_admin_id,
        "submitted_by": ticket.submitted_by,
        "is_admin_ticket": ticket.is_admin_ticket,
        "forwarded_to_superadmin": ticket.forwarded_to_superadmin,
        "response_count": len(ticket.responses),
        "updated_at": format_iso(ticket.updated_at),
    }


class NotificationFanout:
    """
    Resolves the audience of a ticket event and hands it to the registry.

    Audience per kind:
      created   - enterprise admins + submitter
      updated   - enterprise admins + submitter
      forwarded - enterprise admins + all superadmins + submitter

    Each principal receives one event; the assigned admin counts as an
    enterprise admin. Must only be called after the write committed.
    Nothing raised here reaches the caller.

    Besides the live push, two events are stored for the notification
    bell so offline recipients see them later: a new response (for the
    submitter, unless they wrote it) and a forward (for every superadmin).
    """

    def __init__(
        self,
        registry: "ChannelRegistry" = None,
        notification_repo: "InAppNotificationRepository" = None,
        principal_repo: "PrincipalRepository" = None
    ):
        if registry is None:
            from .channel_registry import get_channel_registry
            registry = get_channel_registry()
        if notification_repo is None:
            from ..repositories.inapp_notification_repo import InAppNotificationRepository
            notification_repo = InAppNotificationRepository()
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.registry = registry
        self.notification_repo = notification_repo
        self.principal_repo = principal_repo

    def on_ticket_event(
        self,
        kind: TicketEventKind,
        ticket: Ticket,
        actor_id: Optional[str] = None,
        response: Optional[TicketResponse] = None
    ) -> Set[str]:
        """Deliver to connected recipients; returns the principal ids reached"""
        staff_event, submitter_event = EVENT_NAMES[kind]
        payload = ticket_payload(ticket)
        payload["kind"] = kind.value
        reached: Set[str] = set()

        # An admin filing its own ticket is told as staff, not acknowledged as a submitter
        acknowledge = kind != TicketEventKind.CREATED or ticket.submitter_role == Role.USER
        skip = {ticket.submitted_by} if acknowledge else set()

        if ticket.enterprise_id:
            reached |= self._safely(
                lambda: self.registry.broadcast_to_enterprise_admins(
                    ticket.enterprise_id, staff_event, payload, exclude=skip
                ),
                ticket, staff_event
            )

        assigned = ticket.assigned_admin_id
        if assigned and assigned not in reached and assigned not in skip:
            reached |= self._send(assigned, staff_event, payload, ticket)

        if kind == TicketEventKind.FORWARDED:
            reached |= self._safely(
                lambda: self.registry.broadcast_to_superadmins(
                    staff_event, payload, exclude=reached | skip
                ),
                ticket, staff_event
            )

        if acknowledge:
            reached |= self._send(ticket.submitted_by, submitter_event, payload, ticket)

        logger.info(
            f"Fan-out {kind.value} for {ticket.ticket_id} reached {len(reached)} principal(s)",
            extra={"ticket_id": ticket.ticket_id, "event": kind.value}
        )

        self.store(kind, ticket, actor_id=actor_id, response=response)
        return reached

    def store(
        self,
        kind: TicketEventKind,
        ticket: Ticket,
        actor_id: Optional[str] = None,
        response: Optional[TicketResponse] = None
    ) -> List[str]:
        """Persist bell notifications for the event; returns the recipient ids"""
        recipients: List[str] = []

        if kind == TicketEventKind.UPDATED and response is not None:
            if response.author_id != ticket.submitted_by:
                recipients += self._stored(
                    [ticket.submitted_by],
                    InAppNotificationCategory.TICKET_RESPONSE,
                    "Ticket Response",
                    f"New response added to your ticket: {ticket.subject}",
                    ticket, actor_id
                )

        elif kind == TicketEventKind.FORWARDED:
            try:
                superadmins = self.principal_repo.list_superadmin_ids()
            except Exception as e:
                logger.warning(
                    f"Could not resolve superadmins for {ticket.ticket_id}: {e}",
                    extra={"ticket_id": ticket.ticket_id, "event": kind.value}
                )
                superadmins = []
            source = ticket.enterprise_id or "an enterprise"
            recipients += self._stored(
                [pid for pid in superadmins if pid != actor_id],
                InAppNotificationCategory.TICKET_FORWARDED,
                "Ticket Forwarded",
                f"Ticket {ticket.ticket_id} forwarded from {source}",
                ticket, actor_id
            )

        return recipients

    def _stored(
        self,
        recipient_ids: List[str],
        category: InAppNotificationCategory,
        title: str,
        message: str,
        ticket: Ticket,
        actor_id: Optional[str]
    ) -> List[str]:
        stored = []
        for recipient_id in recipient_ids:
            try:
                self.notification_repo.create_notification(
                    recipient_id=recipient_id,
                    category=category,
                    title=title,
                    message=message,
                    ticket_id=ticket.ticket_id,
                    actor_id=actor_id,
                )
                stored.append(recipient_id)
            except Exception as e:
                logger.warning(
                    f"Failed to store notification for {recipient_id}: {e}",
                    extra={"ticket_id": ticket.ticket_id, "principal_id": recipient_id, "event": category.value}
                )
        return stored

    def _send(self, principal_id: str, event: str, payload: Dict[str, Any], ticket: Ticket) -> Set[str]:
        return self._safely(
            lambda: {principal_id} if self.registry.send(principal_id, event, payload) else set(),
            ticket, event
        )

    def _safely(self, deliver, ticket: Ticket, event: str) -> Set[str]:
        try:
            return set(deliver())
        except Exception as e:
            logger.warning(
                f"Notification delivery failed for {ticket.ticket_id}: {e}",
                extra={"ticket_id": ticket.ticket_id, "event": event}
            )
            return set()
