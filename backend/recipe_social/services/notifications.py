"""
Notification feed.

Two read signals coexist on purpose:

* each notification's ``read`` flag, flipped when that item is opened or by
  ``mark_all_notifications_as_read``;
* the recipient's ``last_opened_notification_at`` watermark, advanced when the
  panel is opened, which drives the badge (items created after it).

Opening the panel never flips ``read`` flags, so the two counts can differ.
Deleted notifications are soft-deleted and filtered from every read path.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from recipe_social.core.config import settings
from recipe_social.core.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from recipe_social.core.firebase import firebase_service
from recipe_social.core.listeners import (
    ResubscribableSubscription,
    change_feed,
    notifications_topic,
    preferences_topic,
)
from recipe_social.db.session import commit_or_raise
from recipe_social.models.notification import Notification, NotificationType
from recipe_social.models.user import User
from recipe_social.schemas.notification import NotificationResponse
from recipe_social.services.preferences import get_last_opened_notification_at, update_last_opened_notification_at
from recipe_social.services.profiles import DEFAULT_POST_TITLE, get_post_title, get_profile
from recipe_social.utils.logger import log_event, log_failure
from recipe_social.utils.timestamps import utcnow

POST_NOTIFICATION_TYPES = (NotificationType.comment, NotificationType.like, NotificationType.rating)


def _parse_type(notification_type) -> NotificationType:
    try:
        return NotificationType(notification_type)
    except ValueError:
        raise InvalidRequestError(f"Unknown notification type '{notification_type}'")


def _live(user_id: str):
    return (Notification.recipient_user_id == user_id, Notification.deleted.is_(False))


def format_notification_message(
    notification_type: NotificationType,
    actor_name: str,
    post_title: Optional[str] = None,
    rating_value: Optional[int] = None,
) -> str:
    post = f'"{post_title}"' if post_title and post_title != DEFAULT_POST_TITLE else None
    if notification_type == NotificationType.follow:
        return f"{actor_name} started following you."
    if notification_type == NotificationType.like:
        return f"{actor_name} liked your post: {post}." if post else f"{actor_name} liked your post."
    if notification_type == NotificationType.comment:
        return f"{actor_name} commented on your {post} recipe." if post else f"{actor_name} commented on your post."
    if notification_type == NotificationType.rating:
        stars = f" {rating_value} star{'s' if rating_value != 1 else ''}" if rating_value else ""
        return f"{actor_name} rated your {post} recipe{stars}." if post else f"{actor_name} rated your post{stars}."
    if notification_type == NotificationType.message_request:
        return f"{actor_name} sent you a message request."
    return f"{actor_name} interacted with you."


def _send_push(db: Session, notification: Notification) -> None:
    """Best effort FCM push; never fails the notification write."""
    if not settings.PUSH_NOTIFICATIONS_ENABLED:
        return
    try:
        recipient = db.get(User, notification.recipient_user_id)
        if recipient is None or not recipient.fcm_token:
            return
        actor = get_profile(db, notification.actor_user_id)
        post_title = get_post_title(db, notification.related_post_id) if notification.type in POST_NOTIFICATION_TYPES else None
        firebase_service.send_push_notification(
            recipient.fcm_token,
            title="New notification",
            body=format_notification_message(notification.type, actor.display_name, post_title, notification.rating_value),
            data={
                "notification_id": notification.id,
                "type": notification.type.value,
                "message_thread_id": notification.message_thread_id,
                "related_post_id": notification.related_post_id,
            },
        )
    except Exception as e:
        log_failure("Notification", f"sending push for {notification.id}", e)


async def create_notification(
    db: Session,
    recipient_user_id: str,
    actor_user_id: str,
    notification_type,
    related_post_id: Optional[str] = None,
    message_thread_id: Optional[str] = None,
    rating_value: Optional[int] = None,
) -> Optional[str]:
    """
    Insert a notification and return its id; ``None`` when a user would
    notify themselves. A like on a post that already has a live like
    notification for the recipient takes over that row instead.
    """
    if not recipient_user_id or not actor_user_id or not notification_type:
        raise InvalidRequestError("Recipient ID, Actor ID, and type are required")
    notification_type = _parse_type(notification_type)

    if recipient_user_id == actor_user_id:
        return None

    if notification_type == NotificationType.like and related_post_id:
        existing = db.execute(
            select(Notification)
            .where(
                *_live(recipient_user_id),
                Notification.type == NotificationType.like,
                Notification.related_post_id == related_post_id,
            )
            .order_by(Notification.created_at.desc())
            .limit(1)
        ).scalars().first()
        if existing is not None:
            existing.actor_user_id = actor_user_id
            existing.created_at = utcnow()
            existing.read = False
            commit_or_raise(db, "update like notification")
            notification_id = existing.id
            _send_push(db, existing)
            await change_feed.publish(notifications_topic(recipient_user_id), notification_id)
            return notification_id

    notification = Notification(
        recipient_user_id=recipient_user_id,
        actor_user_id=actor_user_id,
        type=notification_type,
        related_post_id=related_post_id,
        message_thread_id=message_thread_id,
        rating_value=rating_value,
        read=False,
        deleted=False,
        created_at=utcnow(),
    )
    db.add(notification)
    commit_or_raise(db, "create notification")
    notification_id = notification.id
    log_event("Notification", f"Created {notification_type.value} notification {notification_id} for {recipient_user_id}")

    _send_push(db, notification)
    await change_feed.publish(notifications_topic(recipient_user_id), notification_id)
    return notification_id


def serialize_notification(db: Session, notification: Notification) -> NotificationResponse:
    actor = get_profile(db, notification.actor_user_id)
    post_title = None
    if notification.related_post_id and notification.type in POST_NOTIFICATION_TYPES:
        post_title = get_post_title(db, notification.related_post_id)
    return NotificationResponse(
        id=notification.id,
        recipient_user_id=notification.recipient_user_id,
        actor_user_id=notification.actor_user_id,
        type=notification.type,
        related_post_id=notification.related_post_id,
        message_thread_id=notification.message_thread_id,
        rating_value=notification.rating_value,
        read=bool(notification.read),
        created_at=notification.created_at,
        actor_name=actor.display_name,
        actor_avatar=actor.avatar_url,
        post_title=post_title,
        message=format_notification_message(notification.type, actor.display_name, post_title, notification.rating_value),
    )


def list_notifications(
    db: Session,
    user_id: str,
    limit: Optional[int] = None,
    unread_only: bool = False,
) -> List[NotificationResponse]:
    if not user_id:
        return []
    stmt = select(Notification).where(*_live(user_id))
    if unread_only:
        stmt = stmt.where(Notification.read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc()).limit(limit or settings.NOTIFICATION_PAGE_SIZE)
    return [serialize_notification(db, n) for n in db.execute(stmt).scalars().all()]


def _get_own_notification(db: Session, notification_id: str, user_id: Optional[str]) -> Notification:
    if not notification_id:
        raise InvalidRequestError("Notification ID is required")
    notification = db.get(Notification, notification_id)
    if notification is None:
        raise NotFoundError(f"Notification {notification_id} not found")
    if user_id is not None and notification.recipient_user_id != user_id:
        raise PermissionDeniedError("Not the recipient of this notification")
    return notification


async def mark_notification_as_read(db: Session, notification_id: str, user_id: Optional[str] = None) -> None:
    notification = _get_own_notification(db, notification_id, user_id)
    recipient_id = notification.recipient_user_id
    if notification.read:
        return
    notification.read = True
    commit_or_raise(db, "mark notification as read")
    await change_feed.publish(notifications_topic(recipient_id), notification_id)


async def mark_all_notifications_as_read(db: Session, user_id: str, notification_ids: Optional[List[str]] = None) -> int:
    """Flip ``read`` on the given ids, or on the user's live unread items. Returns how many changed."""
    if not user_id:
        raise InvalidRequestError("User ID is required")

    stmt = select(Notification).where(*_live(user_id), Notification.read.is_(False))
    if notification_ids:
        stmt = stmt.where(Notification.id.in_(notification_ids))
    else:
        stmt = stmt.limit(settings.MARK_ALL_READ_LIMIT)
    unread = db.execute(stmt).scalars().all()
    if not unread:
        return 0

    for notification in unread:
        notification.read = True
    commit_or_raise(db, "mark notifications as read")
    await change_feed.publish(notifications_topic(user_id), None)
    return len(unread)


async def delete_notification(db: Session, notification_id: str, user_id: Optional[str] = None) -> None:
    notification = _get_own_notification(db, notification_id, user_id)
    recipient_id = notification.recipient_user_id
    notification.deleted = True
    commit_or_raise(db, "delete notification")
    await change_feed.publish(notifications_topic(recipient_id), notification_id)


def get_unread_notification_count(db: Session, user_id: str) -> int:
    if not user_id:
        return 0
    return db.execute(
        select(func.count(Notification.id)).where(*_live(user_id), Notification.read.is_(False))
    ).scalar_one()


def count_notifications_since(db: Session, user_id: str, since: Optional[datetime]) -> int:
    """Badge count for a fixed watermark; without one every unread item counts."""
    if not user_id:
        return 0
    if since is None:
        return get_unread_notification_count(db, user_id)
    return db.execute(
        select(func.count(Notification.id)).where(*_live(user_id), Notification.created_at > since)
    ).scalar_one()


def get_badge_count(db: Session, user_id: str) -> int:
    return count_notifications_since(db, user_id, get_last_opened_notification_at(db, user_id))


async def mark_notifications_opened(db: Session, user_id: str) -> datetime:
    """Advance the badge watermark. Item ``read`` flags are left as they are."""
    return await update_last_opened_notification_at(db, user_id)


async def listen_to_user_notifications(session_factory, user_id: str, callback, limit: Optional[int] = None, unread_only: bool = False):
    return await change_feed.watch(
        notifications_topic(user_id),
        session_factory,
        lambda db: list_notifications(db, user_id, limit=limit, unread_only=unread_only),
        callback,
    )


async def listen_to_badge_count(session_factory, user_id: str, callback) -> ResubscribableSubscription:
    """
    Badge listener bound to the current watermark. When the watermark moves,
    the old notification subscription is torn down before the new one starts.
    """
    handle = ResubscribableSubscription()

    async def bind(_payload=None):
        handle.drop_inner()
        if not handle.active:
            return
        db = session_factory()
        try:
            watermark = get_last_opened_notification_at(db, user_id)
        finally:
            db.close()
        subscription = await change_feed.watch(
            notifications_topic(user_id),
            session_factory,
            lambda db: count_notifications_since(db, user_id, watermark),
            callback,
        )
        handle.attach_inner(subscription)

    handle.control = change_feed.subscribe(preferences_topic(user_id), bind)
    try:
        await bind()
    except Exception:
        handle.unsubscribe()
        raise
    return handle
