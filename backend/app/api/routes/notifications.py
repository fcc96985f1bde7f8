"""Notifications API - stored in-app notifications for the caller"""
from typing import List
from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from ..deps import get_current_principal_dep, get_notification_repo
from ...domain.models import Principal, InAppNotification
from ...domain.errors import NotificationNotFoundError
from ...repositories.inapp_notification_repo import InAppNotificationRepository
from ...utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class NotificationListOut(BaseModel):
    notifications: List[InAppNotification]
    unread_count: int
    total: int


class UnreadCountOut(BaseModel):
    unread_count: int


class MarkAllReadOut(BaseModel):
    marked: int


@router.get("", response_model=NotificationListOut)
async def list_notifications(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
    unread_only: bool = Query(False),
    principal: Principal = Depends(get_current_principal_dep),
    repo: InAppNotificationRepository = Depends(get_notification_repo)
):
    """Newest first, with the caller's unread and total counts"""
    items = repo.list_for_recipient(principal.principal_id, skip=skip, limit=limit, unread_only=unread_only)
    return NotificationListOut(
        notifications=items,
        unread_count=repo.count_for_recipient(principal.principal_id, unread_only=True),
        total=repo.count_for_recipient(principal.principal_id),
    )


@router.get("/unread-count", response_model=UnreadCountOut)
async def get_unread_count(
    principal: Principal = Depends(get_current_principal_dep),
    repo: InAppNotificationRepository = Depends(get_notification_repo)
):
    return UnreadCountOut(unread_count=repo.count_for_recipient(principal.principal_id, unread_only=True))


@router.post("/read-all", response_model=MarkAllReadOut)
async def mark_all_read(
    principal: Principal = Depends(get_current_principal_dep),
    repo: InAppNotificationRepository = Depends(get_notification_repo)
):
    return MarkAllReadOut(marked=repo.mark_all_as_read(principal.principal_id))


@router.post("/{notification_id}/read", response_model=InAppNotification)
async def mark_read(
    notification_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    repo: InAppNotificationRepository = Depends(get_notification_repo)
):
    """404 when the notification is not the caller's"""
    return repo.mark_as_read(notification_id, principal.principal_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal_dep),
    repo: InAppNotificationRepository = Depends(get_notification_repo)
):
    if not repo.delete_notification(notification_id, principal.principal_id):
        raise NotificationNotFoundError(
            f"Notification {notification_id} not found",
            details={"notification_id": notification_id}
        )
    logger.info("Deleted notification", extra={"principal_id": principal.principal_id})
