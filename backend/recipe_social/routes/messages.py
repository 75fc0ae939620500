from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from recipe_social.db.session import get_db
from recipe_social.models.user import User
from recipe_social.schemas.message import MessageCreate, MessageUpdate, MessageCreated, MessageResponse, ReactionUpdate
from recipe_social.core.auth import get_current_user
from recipe_social.services import messages
from recipe_social.services.conversations import get_conversation, require_participant
from recipe_social.services.reactions import toggle_reaction
from recipe_social.utils.logger import safe_print

router = APIRouter()

@router.post("/", response_model=MessageCreated)
async def create_message(
    message: MessageCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Send a message as the current user
    """
    safe_print("=" * 50)
    safe_print(f"POST /messages/ - Create Message")
    safe_print(f"User: {current_user.id}")
    safe_print(f"Conversation ID: {message.conversation_id}")
    safe_print(f"Text: {message.text[:100] if message.text else 'None'}")
    safe_print(f"Attachments: {len(message.attachments)}")
    safe_print("=" * 50)
    message_id = await messages.send_message(
        db,
        message.conversation_id,
        current_user.id,
        text=message.text,
        attachments=message.attachments,
    )
    return MessageCreated(message_id=message_id, conversation_id=message.conversation_id)

@router.get("/conversation/{conversation_id}", response_model=List[MessageResponse])
async def get_conversation_messages(
    conversation_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Messages of a conversation in send order, without the ones the current user hid
    """
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, current_user.id)
    return messages.list_messages(db, conversation_id, current_user.id)

@router.patch("/{conversation_id}/{message_id}", response_model=MessageResponse)
async def update_message(
    conversation_id: str,
    message_id: str,
    message_update: MessageUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Edit a message (sender only)"""
    message = await messages.edit_message(db, conversation_id, message_id, current_user.id, message_update.text)
    return messages.serialize_message(message, current_user.id)

@router.delete("/{conversation_id}/{message_id}")
async def delete_message(
    conversation_id: str,
    message_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a message for everyone (sender only)"""
    await messages.delete_message(db, conversation_id, message_id, current_user.id)
    return {"message": "Message deleted successfully"}

@router.post("/{conversation_id}/{message_id}/hide")
async def hide_message(
    conversation_id: str,
    message_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete a message for the current user only"""
    await messages.hide_message_for(db, conversation_id, message_id, current_user.id)
    return {"message": "Message hidden"}

@router.put("/{conversation_id}/{message_id}/reaction")
async def react_to_message(
    conversation_id: str,
    message_id: str,
    reaction: ReactionUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Toggle the current user's reaction: same kind clears it, another kind replaces it
    """
    my_reaction = await toggle_reaction(db, conversation_id, message_id, current_user.id, reaction.kind)
    return {"message_id": message_id, "my_reaction": my_reaction}
