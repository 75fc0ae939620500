from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from recipe_social.models.notification import NotificationType

class NotificationCreate(BaseModel):
    recipient_user_id: str
    type: NotificationType
    related_post_id: Optional[str] = None
    message_thread_id: Optional[str] = None
    rating_value: Optional[int] = Field(default=None, ge=1, le=5)

class NotificationCreated(BaseModel):
    notification_id: Optional[str] = None

class MarkReadRequest(BaseModel):
    notification_ids: Optional[List[str]] = None

class NotificationResponse(BaseModel):
    id: str
    recipient_user_id: str
    actor_user_id: str
    type: str
    related_post_id: Optional[str] = None
    message_thread_id: Optional[str] = None
    rating_value: Optional[int] = None
    read: bool = False
    created_at: datetime
    actor_name: str = "User"
    actor_avatar: Optional[str] = None
    post_title: Optional[str] = None
    message: str = ""

    @field_validator('type', mode='before')
    @classmethod
    def validate_type(cls, value):
        if isinstance(value, NotificationType):
            return value.value
        return value

class NotificationCountResponse(BaseModel):
    count: int
