from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel
from recipe_social.schemas.user import ProfileResponse

class ConversationResponse(BaseModel):
    id: str
    participants: List[str]
    is_request: Dict[str, bool] = {}
    request_status: str = "pending"
    request_to: Optional[str] = None
    unread_count: Dict[str, int] = {}
    last_seen_timestamp: Dict[str, datetime] = {}
    last_message: str = ""
    last_message_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    other_user: Optional[ProfileResponse] = None

class ConversationCreated(BaseModel):
    conversation_id: str

class UnreadCountResponse(BaseModel):
    count: int
