from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from recipe_social.db.session import get_db
from recipe_social.models.user import User
from recipe_social.schemas.conversation import ConversationResponse, ConversationCreated, UnreadCountResponse
from recipe_social.core.auth import get_current_user
from recipe_social.services import conversations
from recipe_social.services.messages import delete_conversation
from recipe_social.utils.logger import safe_print

router = APIRouter()

@router.get("/", response_model=List[ConversationResponse])
async def get_conversations(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get all conversations for the current user, newest activity first
    """
    return conversations.list_user_conversations(db, current_user.id)

@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Number of conversations with unread messages for the current user"""
    return UnreadCountResponse(count=conversations.count_unread_conversations(db, current_user.id))

@router.post("/with/{user_id}", response_model=ConversationCreated)
async def get_or_create_conversation(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get or create the direct conversation with a specific user
    """
    safe_print(f"POST /conversations/with/{user_id} by {current_user.id}")
    conversation_id = await conversations.start_conversation(db, current_user.id, user_id)
    return ConversationCreated(conversation_id=conversation_id)

@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = conversations.get_conversation(db, conversation_id)
    conversations.require_participant(conversation, current_user.id)
    return conversations.serialize_conversation(db, conversation, current_user.id)

@router.post("/{conversation_id}/accept", response_model=ConversationResponse)
async def accept_request(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = await conversations.accept_message_request(db, conversation_id, current_user.id)
    return conversations.serialize_conversation(db, conversation, current_user.id)

@router.post("/{conversation_id}/ignore", response_model=ConversationResponse)
async def ignore_request(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    conversation = await conversations.ignore_message_request(db, conversation_id, current_user.id)
    return conversations.serialize_conversation(db, conversation, current_user.id)

@router.post("/{conversation_id}/seen")
async def mark_seen(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Mark every incoming message as seen and reset the unread counter"""
    marked = await conversations.mark_messages_as_seen(db, conversation_id, current_user.id)
    return {"conversation_id": conversation_id, "marked": marked}

@router.delete("/{conversation_id}")
async def remove_conversation(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    safe_print(f"DELETE /conversations/{conversation_id} by {current_user.id}")
    deleted = await delete_conversation(db, conversation_id, actor_id=current_user.id)
    return {"conversation_id": conversation_id, "deleted_messages": deleted}
