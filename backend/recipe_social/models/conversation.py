from sqlalchemy import Column, String, DateTime, Text, Boolean, Integer, ForeignKey, JSON, CheckConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow
from enum import Enum
import uuid


class RequestStatus(str, Enum):
    pending = 'pending'
    accepted = 'accepted'
    ignored = 'ignored'


class Conversation(Base):
    """A direct thread between exactly two users, unique per unordered pair."""
    __tablename__ = "conversations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # "<low>:<high>" of the sorted participant ids; the unique index backs lookup-before-create
    participant_key = Column(String(260), unique=True, nullable=False)
    participants = Column(JSON, nullable=False)  # sorted [id, id]
    request_status = Column(SAEnum(RequestStatus, name='request_status'), nullable=False, default=RequestStatus.pending)
    request_to = Column(String(128), nullable=True)
    last_message = Column(Text, nullable=False, default="")
    last_message_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    members = relationship(
        "ConversationParticipant",
        back_populates="conversation",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def member(self, user_id: str):
        for state in self.members:
            if state.user_id == user_id:
                return state
        return None

    def other_participant(self, user_id: str):
        others = [p for p in self.participants or [] if p != user_id]
        return others[0] if others else None


class ConversationParticipant(Base):
    """Per-viewer side of a conversation: request classification, unread counter, seen watermark."""
    __tablename__ = "conversation_participants"

    conversation_id = Column(String(36), ForeignKey('conversations.id', ondelete='CASCADE'), primary_key=True)
    user_id = Column(String(128), primary_key=True, index=True)
    is_request = Column(Boolean, nullable=False, default=True)
    # One-way latch: once set, is_request stays False for this viewer
    has_engaged = Column(Boolean, nullable=False, default=False)
    unread_count = Column(Integer, nullable=False, default=0)
    last_seen_at = Column(DateTime, nullable=True)

    conversation = relationship("Conversation", back_populates="members")

    __table_args__ = (
        CheckConstraint('unread_count >= 0', name='unread_count_non_negative'),
    )
