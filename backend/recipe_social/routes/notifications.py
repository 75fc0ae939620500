from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from recipe_social.db.session import get_db
from recipe_social.models.user import User
from recipe_social.schemas.notification import (
    MarkReadRequest,
    NotificationCountResponse,
    NotificationCreate,
    NotificationCreated,
    NotificationResponse,
)
from recipe_social.core.auth import get_current_user
from recipe_social.core.exceptions import InvalidRequestError
from recipe_social.services import notifications

router = APIRouter()

@router.get("/", response_model=List[NotificationResponse])
async def get_notifications(
    limit: Optional[int] = Query(None, ge=1, le=200),
    unread_only: bool = False,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return notifications.list_notifications(db, current_user.id, limit=limit, unread_only=unread_only)

@router.post("/", response_model=NotificationCreated)
async def create_notification(
    payload: NotificationCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Record an interaction by the current user (comment, like, rating) for
    another user. Notifying yourself is a no-op. Follow and message-request
    notifications only come from following and messaging.
    """
    if payload.type not in notifications.POST_NOTIFICATION_TYPES:
        raise InvalidRequestError(f"Notification type {payload.type.value} cannot be created directly")
    notification_id = await notifications.create_notification(
        db,
        payload.recipient_user_id,
        current_user.id,
        payload.type,
        related_post_id=payload.related_post_id,
        message_thread_id=payload.message_thread_id,
        rating_value=payload.rating_value,
    )
    return NotificationCreated(notification_id=notification_id)

@router.get("/unread-count", response_model=NotificationCountResponse)
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return NotificationCountResponse(count=notifications.get_unread_notification_count(db, current_user.id))

@router.get("/badge-count", response_model=NotificationCountResponse)
async def get_badge_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Items created since the notification panel was last opened"""
    return NotificationCountResponse(count=notifications.get_badge_count(db, current_user.id))

@router.post("/opened")
async def mark_opened(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    opened_at = await notifications.mark_notifications_opened(db, current_user.id)
    return {"last_opened_notification_at": opened_at}

@router.post("/read-all")
async def mark_all_read(
    payload: Optional[MarkReadRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ids = payload.notification_ids if payload else None
    updated = await notifications.mark_all_notifications_as_read(db, current_user.id, ids)
    return {"updated": updated}

@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await notifications.mark_notification_as_read(db, notification_id, current_user.id)
    return {"message": "Notification marked as read"}

@router.delete("/{notification_id}")
async def delete_notification(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    await notifications.delete_notification(db, notification_id, current_user.id)
    return {"message": "Notification deleted"}
