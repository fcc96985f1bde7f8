"""Audit Repository - Data access for audit events"""
from typing import Optional
from pymongo.collection import Collection

from .mongo_client import get_collection, AUDIT_EVENTS
from ..domain.models import AuditEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class AuditRepository:
    """Repository for audit event operations (append-only)"""

    def __init__(self, collection: Optional[Collection] = None):
        self._audit_events: Collection = collection if collection is not None else get_collection(AUDIT_EVENTS)

    def create_event(self, event: AuditEvent) -> AuditEvent:
        """Create an audit event (append-only)"""
        doc = event.model_dump()
        doc["_id"] = event.audit_event_id

        self._audit_events.insert_one(doc)
        logger.debug(
            f"Created audit event: {event.action.value}",
            extra={"actor_id": event.actor_id, "action": event.action.value}
        )
        return event
