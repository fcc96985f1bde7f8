"""In-App Notification Repository - Data access for the notification bell"""
from datetime import timedelta
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument

from .mongo_client import get_collection, INAPP_NOTIFICATIONS
from ..domain.models import InAppNotification
from ..domain.enums import InAppNotificationCategory
from ..domain.errors import NotificationNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now
from ..utils.idgen import generate_notification_id

logger = get_logger(__name__)


def _to_notification(doc: Optional[Dict[str, Any]]) -> Optional[InAppNotification]:
    if not doc:
        return None
    doc.pop("_id", None)
    return InAppNotification.model_validate(doc)


class InAppNotificationRepository:
    """
    Repository for stored notifications, keyed by recipient principal id.

    Old notifications expire through the TTL index on `expires_at`.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._collection: Collection = (
            collection if collection is not None else get_collection(INAPP_NOTIFICATIONS)
        )

    def create_notification(
        self,
        recipient_id: str,
        category: InAppNotificationCategory,
        title: str,
        message: str,
        ticket_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        expires_in_days: int = 90
    ) -> InAppNotification:
        now = utc_now()
        notification = InAppNotification(
            notification_id=generate_notification_id(),
            recipient_id=recipient_id,
            category=category,
            title=title,
            message=message,
            ticket_id=ticket_id,
            actor_id=actor_id,
            is_read=False,
            created_at=now,
            expires_at=now + timedelta(days=expires_in_days),
        )

        doc = notification.model_dump()
        doc["_id"] = notification.notification_id
        self._collection.insert_one(doc)

        logger.info(
            f"Created in-app notification for {recipient_id}",
            extra={"principal_id": recipient_id, "ticket_id": ticket_id, "event": category.value}
        )
        return notification

    def list_for_recipient(
        self,
        recipient_id: str,
        skip: int = 0,
        limit: int = 50,
        unread_only: bool = False
    ) -> List[InAppNotification]:
        """Newest first"""
        query: Dict[str, Any] = {"recipient_id": recipient_id}
        if unread_only:
            query["is_read"] = False
        cursor = self._collection.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [_to_notification(doc) for doc in cursor]

    def count_for_recipient(self, recipient_id: str, unread_only: bool = False) -> int:
        query: Dict[str, Any] = {"recipient_id": recipient_id}
        if unread_only:
            query["is_read"] = False
        return self._collection.count_documents(query)

    def mark_as_read(self, notification_id: str, recipient_id: str) -> InAppNotification:
        """Scoped to the recipient, so one principal cannot touch another's notifications"""
        doc = self._collection.find_one_and_update(
            {"notification_id": notification_id, "recipient_id": recipient_id},
            {"$set": {"is_read": True, "read_at": utc_now()}},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotificationNotFoundError(
                f"Notification {notification_id} not found",
                details={"notification_id": notification_id}
            )
        return _to_notification(doc)

    def mark_all_as_read(self, recipient_id: str) -> int:
        result = self._collection.update_many(
            {"recipient_id": recipient_id, "is_read": False},
            {"$set": {"is_read": True, "read_at": utc_now()}}
        )
        logger.info(
            f"Marked {result.modified_count} notifications as read",
            extra={"principal_id": recipient_id}
        )
        return result.modified_count

    def delete_notification(self, notification_id: str, recipient_id: str) -> bool:
        result = self._collection.delete_one(
            {"notification_id": notification_id, "recipient_id": recipient_id}
        )
        return result.deleted_count > 0
