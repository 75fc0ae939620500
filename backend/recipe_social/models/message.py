from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Text, JSON, UniqueConstraint, Index
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import relationship
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow
from enum import Enum
import uuid


class MessageStatus(str, Enum):
    sent = 'sent'
    delivered = 'delivered'
    read = 'read'


class ReactionKind(str, Enum):
    heart = 'heart'
    appetite = 'appetite'
    angry = 'angry'
    sad = 'sad'
    like = 'like'
    yeah = 'yeah'


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(String(36), ForeignKey('conversations.id', ondelete='CASCADE'), nullable=False)
    sender_id = Column(String(128), nullable=False)
    text = Column(Text, nullable=False, default="")
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(SAEnum(MessageStatus, name='message_status'), nullable=False, default=MessageStatus.sent)
    seen_by = Column(JSON, nullable=False, default=list)
    deleted_by = Column(JSON, nullable=False, default=list)  # viewers who hid this message for themselves
    edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    reactions = relationship(
        "MessageReaction",
        back_populates="message",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index('ix_messages_conversation_created', 'conversation_id', 'created_at'),
    )


class MessageReaction(Base):
    """One row per (message, reactor); counts per kind are derived."""
    __tablename__ = "message_reactions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    message_id = Column(String(36), ForeignKey('messages.id', ondelete='CASCADE'), nullable=False)
    user_id = Column(String(128), nullable=False)
    kind = Column(SAEnum(ReactionKind, name='reaction_kind'), nullable=False)
    created_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    message = relationship("Message", back_populates="reactions")

    __table_args__ = (
        UniqueConstraint('message_id', 'user_id', name='one_reaction_per_user'),
    )
