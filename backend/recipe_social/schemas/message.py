from pydantic import BaseModel, Field, field_validator
from typing import Dict, List, Optional
from datetime import datetime
from recipe_social.models.message import ReactionKind

class MessageCreate(BaseModel):
    conversation_id: str
    text: Optional[str] = ""
    attachments: List[dict] = Field(default_factory=list)

    @field_validator('text', mode='before')
    @classmethod
    def validate_text(cls, value):
        """Accept null and bytes from clients; store text as a Unicode string"""
        if value is None:
            return ""
        if isinstance(value, bytes):
            return value.decode('utf-8', errors='replace')
        return str(value)

class MessageUpdate(BaseModel):
    text: str

class ReactionUpdate(BaseModel):
    kind: ReactionKind

class MessageCreated(BaseModel):
    message_id: str
    conversation_id: str

class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    sender_id: str
    text: str = ""
    attachments: List[dict] = []
    reactions: Dict[str, int] = {}
    my_reaction: Optional[str] = None
    status: str = "sent"
    seen_by: List[str] = []
    edited: bool = False
    edited_at: Optional[datetime] = None
    deleted_by: List[str] = []
    created_at: datetime

    @field_validator('attachments', 'seen_by', 'deleted_by', mode='before')
    @classmethod
    def validate_array_fields(cls, value):
        """JSON columns written by older rows may be null"""
        if value is None:
            return []
        return list(value)
