"""Ticket Repository - Data access for tickets and their responses"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import get_collection, TICKETS
from ..domain.models import Ticket, TicketResponse
from ..domain.enums import Role, TicketStatus
from ..domain.errors import TicketNotFoundError, ResponseNotFoundError, ConcurrencyError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _to_ticket(doc: Optional[Dict[str, Any]]) -> Optional[Ticket]:
    if not doc:
        return None
    doc.pop("_id", None)
    return Ticket.model_validate(doc)


def _stamp_and_append(
    response: TicketResponse,
    role: Role,
    status: Optional[TicketStatus],
    now: datetime
) -> List[Dict[str, Any]]:
    """
    Pipeline update: stamp `role` on responses without an author role and
    append `response`. A plain update cannot $set into responses.$[] and
    $push onto responses at once.
    """
    stamped = {
        "$map": {
            "input": {"$ifNull": ["$responses", []]},
            "as": "r",
            "in": {
                "$cond": [
                    {"$eq": [{"$ifNull": ["$$r.author_role", None]}, None]},
                    {"$mergeObjects": ["$$r", {"author_role": role.value}]},
                    "$$r",
                ]
            },
        }
    }
    fields: Dict[str, Any] = {
        # $literal keeps user text starting with "$" from being read as a field path
        "responses": {"$concatArrays": [stamped, [{"$literal": response.model_dump()}]]},
        "updated_at": now,
        "version": {"$add": ["$version", 1]},
    }
    if status is not None:
        fields["status"] = status.value
    return [{"$set": fields}]


class TicketRepository:
    """Repository for ticket operations"""

    def __init__(self, collection: Optional[Collection] = None):
        self._tickets: Collection = collection if collection is not None else get_collection(TICKETS)

    # =========================================================================
    # Ticket CRUD
    # =========================================================================

    def create(self, ticket: Ticket) -> Ticket:
        """Create a new ticket"""
        # Don't use mode="json" - it converts datetime to strings, breaking MongoDB sorting
        doc = ticket.model_dump()
        doc["_id"] = ticket.ticket_id

        self._tickets.insert_one(doc)
        logger.info(f"Created ticket: {ticket.ticket_id}", extra={"ticket_id": ticket.ticket_id})
        return ticket

    def get(self, ticket_id: str) -> Optional[Ticket]:
        return _to_ticket(self._tickets.find_one({"ticket_id": ticket_id}))

    def get_or_raise(self, ticket_id: str) -> Ticket:
        ticket = self.get(ticket_id)
        if not ticket:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})
        return ticket

    def delete(self, ticket_id: str) -> bool:
        result = self._tickets.delete_one({"ticket_id": ticket_id})
        return result.deleted_count == 1

    # =========================================================================
    # Atomic updates
    # =========================================================================

    def apply_update(
        self,
        ticket_id: str,
        status: Optional[TicketStatus] = None,
        response: Optional[TicketResponse] = None,
        expected_version: Optional[int] = None,
        backfill_role: Optional[Role] = None
    ) -> Ticket:
        """
        Set status and/or push a response in one update.

        Responses are appended with $push so two concurrent appends both
        land. With expected_version the write only succeeds if nobody else
        wrote the ticket in between. With backfill_role, responses that have
        no author role yet are stamped with it in the same write.
        """
        now = utc_now()
        if response is not None and backfill_role is not None:
            update: Any = _stamp_and_append(response, backfill_role, status, now)
        else:
            update = {
                "$set": {"updated_at": now},
                "$inc": {"version": 1},
            }
            if status is not None:
                update["$set"]["status"] = status.value
            if response is not None:
                update["$push"] = {"responses": response.model_dump()}

        filter_query: Dict[str, Any] = {"ticket_id": ticket_id}
        if expected_version is not None:
            filter_query["version"] = expected_version

        result = self._tickets.find_one_and_update(
            filter_query,
            update,
            return_document=ReturnDocument.AFTER
        )

        if result is None:
            if expected_version is not None and self._tickets.find_one({"ticket_id": ticket_id}, {"_id": 1}):
                raise ConcurrencyError(
                    f"Ticket {ticket_id} was modified. Please refresh and try again.",
                    details={"expected_version": expected_version}
                )
            raise TicketNotFoundError(f"Ticket {ticket_id} not found", details={"ticket_id": ticket_id})

        logger.info(f"Updated ticket: {ticket_id}", extra={"ticket_id": ticket_id})
        return _to_ticket(result)

    def mark_forwarded(self, ticket_id: str, forwarded_by: str, forwarded_at: datetime) -> Optional[Ticket]:
        """
        Set the forward flag once. Returns None when the ticket was already
        forwarded (or does not exist); forwarded_at is never overwritten.
        """
        return _to_ticket(self._tickets.find_one_and_update(
            {"ticket_id": ticket_id, "forwarded_to_superadmin": {"$ne": True}},
            {
                "$set": {
                    "forwarded_to_superadmin": True,
                    "forwarded_at": forwarded_at,
                    "forwarded_by": forwarded_by,
                    "updated_at": forwarded_at,
                },
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        ))

    def edit_response(self, ticket_id: str, response_id: str, message: str) -> Ticket:
        now = utc_now()
        result = self._tickets.find_one_and_update(
            {"ticket_id": ticket_id, "responses.response_id": response_id},
            {
                "$set": {
                    "responses.$.message": message,
                    "responses.$.updated_at": now,
                    "updated_at": now,
                },
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise ResponseNotFoundError(
                f"Response {response_id} not found on ticket {ticket_id}",
                details={"ticket_id": ticket_id, "response_id": response_id}
            )
        return _to_ticket(result)

    def remove_response(self, ticket_id: str, response_id: str) -> Ticket:
        result = self._tickets.find_one_and_update(
            {"ticket_id": ticket_id, "responses.response_id": response_id},
            {
                "$pull": {"responses": {"response_id": response_id}},
                "$set": {"updated_at": utc_now()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise ResponseNotFoundError(
                f"Response {response_id} not found on ticket {ticket_id}",
                details={"ticket_id": ticket_id, "response_id": response_id}
            )
        return _to_ticket(result)

    # =========================================================================
    # Queries
    # =========================================================================

    def list_tickets(
        self,
        scope: Optional[Dict[str, Any]] = None,
        status: Optional[TicketStatus] = None,
        created_after: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[Ticket]:
        """List tickets inside a visibility scope (see TicketRouter.visibility_scope)"""
        and_conditions: List[Dict[str, Any]] = []
        if scope:
            and_conditions.append(scope)
        if status:
            and_conditions.append({"status": status.value})
        if created_after:
            and_conditions.append({"created_at": {"$gte": created_after}})

        query: Dict[str, Any] = {"$and": and_conditions} if and_conditions else {}
        cursor = self._tickets.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [_to_ticket(doc) for doc in cursor]

    def count_open_for_principal(self, principal_id: str) -> int:
        """Tickets not yet Closed that reference the principal"""
        return self._tickets.count_documents({
            "$or": [{"submitted_by": principal_id}, {"assigned_admin_id": principal_id}],
            "status": {"$ne": TicketStatus.CLOSED.value},
        })
