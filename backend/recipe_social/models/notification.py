from sqlalchemy import Column, String, DateTime, Boolean, Integer, Index
from sqlalchemy import Enum as SAEnum
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow
from enum import Enum
import uuid


class NotificationType(str, Enum):
    follow = 'follow'
    comment = 'comment'
    like = 'like'
    rating = 'rating'
    message_request = 'message_request'


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    recipient_user_id = Column(String(128), nullable=False)
    actor_user_id = Column(String(128), nullable=False)
    type = Column(SAEnum(NotificationType, name='notification_type'), nullable=False)
    related_post_id = Column(String(128), nullable=True)
    message_thread_id = Column(String(36), nullable=True)
    rating_value = Column(Integer, nullable=True)
    read = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False)  # soft delete, terminal
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('ix_notifications_recipient_live', 'recipient_user_id', 'deleted', 'created_at'),
    )
