"""Per-user preferences; currently the notification-panel watermark."""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from recipe_social.core.exceptions import InvalidRequestError
from recipe_social.core.listeners import change_feed, preferences_topic
from recipe_social.db.session import commit_or_raise
from recipe_social.models.user_preference import UserPreference
from recipe_social.utils.timestamps import utcnow


def get_user_preferences(db: Session, user_id: str) -> Optional[UserPreference]:
    if not user_id:
        return None
    return db.get(UserPreference, user_id)


def get_last_opened_notification_at(db: Session, user_id: str) -> Optional[datetime]:
    preferences = get_user_preferences(db, user_id)
    return preferences.last_opened_notification_at if preferences else None


async def update_last_opened_notification_at(db: Session, user_id: str) -> datetime:
    if not user_id:
        raise InvalidRequestError("User ID is required")
    opened_at = utcnow()
    preferences = get_user_preferences(db, user_id)
    if preferences is None:
        db.add(UserPreference(user_id=user_id, last_opened_notification_at=opened_at))
    else:
        preferences.last_opened_notification_at = opened_at
    commit_or_raise(db, "update user preferences")
    await change_feed.publish(preferences_topic(user_id), opened_at)
    return opened_at
