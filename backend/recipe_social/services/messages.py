"""
Message log: the ordered, per-conversation sequence of messages.

Every append, edit and delete ends with ``refresh_last_message``, which
re-derives the conversation's ``last_message``/``last_message_time`` preview
from the log itself. The preview is a cache of the newest message, so a
stale value heals on the next call.
"""
from typing import List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from recipe_social.core.config import settings
from recipe_social.core.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from recipe_social.core.listeners import change_feed, conversations_topic, messages_topic
from recipe_social.db.session import commit_or_raise
from recipe_social.models.conversation import Conversation, ConversationParticipant
from recipe_social.models.message import Message, MessageReaction, MessageStatus
from recipe_social.schemas.message import MessageResponse
from recipe_social.services.conversations import (
    engage,
    get_conversation,
    publish_conversation_change,
    recompute_request,
    require_participant,
)
from recipe_social.services.follows import is_following
from recipe_social.services.reactions import my_reaction, reaction_counts
from recipe_social.utils.logger import log_event, log_failure
from recipe_social.utils.timestamps import next_after, utcnow


def preview_text(text: Optional[str], attachments: Optional[list]) -> str:
    if text:
        return text
    return settings.ATTACHMENT_PREVIEW_TEXT if attachments else ""


def newest_message(db: Session, conversation_id: str) -> Optional[Message]:
    return db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(1)
    ).scalars().first()


def get_message(db: Session, conversation_id: str, message_id: str) -> Message:
    if not message_id:
        raise InvalidRequestError("Message ID is required")
    message = db.get(Message, message_id)
    if message is None or message.conversation_id != conversation_id:
        raise NotFoundError(f"Message {message_id} not found")
    return message


def refresh_last_message(db: Session, conversation: Conversation) -> bool:
    """
    Point the preview at the newest remaining message, or clear it when the
    log is empty. Pending changes must be flushed first. Returns True when
    the preview changed.
    """
    newest = newest_message(db, conversation.id)
    if newest is None:
        text, when = "", None
    else:
        text, when = preview_text(newest.text, newest.attachments), newest.created_at
    if conversation.last_message == text and conversation.last_message_time == when:
        return False
    conversation.last_message = text
    conversation.last_message_time = when
    conversation.updated_at = utcnow()
    return True


async def send_message(
    db: Session,
    conversation_id: str,
    sender_id: str,
    text: Optional[str] = "",
    attachments: Optional[list] = None,
) -> str:
    """
    Append a message and update the registry in the same commit: the sender
    engages, the recipient is recomputed under the latch, the recipient's
    unread counter is atomically incremented and the preview refreshed. A
    ``message_request`` notification follows while the thread is still a
    request for the recipient.
    """
    if not conversation_id or not sender_id:
        raise InvalidRequestError("Conversation ID and sender ID are required")

    conversation = get_conversation(db, conversation_id)
    sender_state = require_participant(conversation, sender_id)
    recipient_id = conversation.other_participant(sender_id)
    recipient_state = conversation.member(recipient_id) if recipient_id else None
    if recipient_state is None:
        raise NotFoundError("Other participant not found")

    previous = newest_message(db, conversation_id)
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        text=text or "",
        attachments=list(attachments or []),
        status=MessageStatus.sent,
        seen_by=[],
        deleted_by=[],
        edited=False,
        created_at=next_after(previous.created_at if previous else None),
    )
    db.add(message)
    db.flush()
    message_id = message.id

    engage(sender_state)
    recompute_request(db, recipient_state, sender_id)
    recipient_follows_sender = is_following(db, recipient_id, sender_id)
    conversation.request_to = None if recipient_follows_sender else recipient_id
    refresh_last_message(db, conversation)
    db.flush()

    # Increment in the store so concurrent senders never drop a count
    db.execute(
        update(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == recipient_id,
        )
        .values(unread_count=ConversationParticipant.unread_count + 1)
        .execution_options(synchronize_session=False)
    )
    commit_or_raise(db, "send message")

    recipient_sees_request = bool(recipient_state.is_request)
    if recipient_sees_request:
        from recipe_social.services.notifications import create_notification, NotificationType
        try:
            await create_notification(
                db,
                recipient_id,
                sender_id,
                NotificationType.message_request,
                message_thread_id=conversation_id,
            )
        except Exception as e:
            db.rollback()
            log_failure("Messaging", "creating message request notification", e)

    await publish_conversation_change(conversation, include_messages=True)
    return message_id


async def edit_message(db: Session, conversation_id: str, message_id: str, editor_id: str, new_text: str) -> Message:
    if not conversation_id or not message_id or not (new_text or "").strip():
        raise InvalidRequestError("Message ID, conversation ID, and text are required")

    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, editor_id)
    message = get_message(db, conversation_id, message_id)
    if message.sender_id != editor_id:
        raise PermissionDeniedError("Only the sender can edit a message")

    message.text = new_text.strip()
    message.edited = True
    message.edited_at = utcnow()
    db.flush()
    # Only moves the preview when this message is the newest one
    preview_changed = refresh_last_message(db, conversation)
    commit_or_raise(db, "edit message")

    if preview_changed:
        await publish_conversation_change(conversation, include_messages=True)
    else:
        await change_feed.publish(messages_topic(conversation_id), conversation_id)
    return message


async def delete_message(db: Session, conversation_id: str, message_id: str, actor_id: str) -> None:
    """Remove the message for everyone and re-derive the preview from what remains."""
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, actor_id)
    message = get_message(db, conversation_id, message_id)
    if message.sender_id != actor_id:
        raise PermissionDeniedError("Only the sender can delete a message")

    db.delete(message)
    db.flush()
    refresh_last_message(db, conversation)
    commit_or_raise(db, "delete message")

    log_event("Messaging", f"Deleted message {message_id} from conversation {conversation_id}")
    await publish_conversation_change(conversation, include_messages=True)


async def hide_message_for(db: Session, conversation_id: str, message_id: str, viewer_id: str) -> None:
    """Per-viewer soft delete: the message disappears from the viewer's listing only."""
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, viewer_id)
    message = get_message(db, conversation_id, message_id)
    deleted_by = list(message.deleted_by or [])
    if viewer_id in deleted_by:
        return
    message.deleted_by = deleted_by + [viewer_id]
    commit_or_raise(db, "hide message")
    await change_feed.publish(messages_topic(conversation_id), conversation_id)


async def delete_conversation(
    db: Session,
    conversation_id: str,
    actor_id: Optional[str] = None,
    batch_size: Optional[int] = None,
) -> int:
    """
    Delete every message in chunks of at most ``batch_size`` (one commit per
    chunk), then the conversation itself. Returns the number of messages removed.
    """
    batch_size = batch_size or settings.MESSAGE_DELETE_BATCH_SIZE
    if batch_size < 1:
        raise InvalidRequestError("Batch size must be positive")

    conversation = get_conversation(db, conversation_id)
    if actor_id is not None:
        require_participant(conversation, actor_id)
    participants = list(conversation.participants or [])

    deleted = 0
    while True:
        batch_ids = list(db.execute(
            select(Message.id)
            .where(Message.conversation_id == conversation_id)
            .limit(batch_size)
        ).scalars().all())
        if not batch_ids:
            break
        db.execute(
            delete(MessageReaction)
            .where(MessageReaction.message_id.in_(batch_ids))
            .execution_options(synchronize_session=False)
        )
        db.execute(
            delete(Message)
            .where(Message.id.in_(batch_ids))
            .execution_options(synchronize_session=False)
        )
        commit_or_raise(db, "delete conversation messages")
        deleted += len(batch_ids)

    db.expire_all()
    conversation = get_conversation(db, conversation_id)
    db.delete(conversation)
    commit_or_raise(db, "delete conversation")

    log_event("Messaging", f"Successfully deleted conversation {conversation_id} and {deleted} messages")
    for user_id in participants:
        await change_feed.publish(conversations_topic(user_id), conversation_id)
    await change_feed.publish(messages_topic(conversation_id), conversation_id)
    return deleted


def serialize_message(message: Message, viewer_id: Optional[str] = None) -> MessageResponse:
    reactions = list(message.reactions or [])
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        text=message.text or "",
        attachments=message.attachments,
        reactions=reaction_counts(reactions),
        my_reaction=my_reaction(reactions, viewer_id),
        status=message.status.value if message.status else MessageStatus.sent.value,
        seen_by=message.seen_by,
        edited=bool(message.edited),
        edited_at=message.edited_at,
        deleted_by=message.deleted_by,
        created_at=message.created_at,
    )


def list_messages(db: Session, conversation_id: str, viewer_id: Optional[str] = None) -> List[MessageResponse]:
    """Messages in creation order, minus the ones the viewer hid for themselves."""
    messages = db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    ).scalars().all()
    return [
        serialize_message(message, viewer_id)
        for message in messages
        if not viewer_id or viewer_id not in (message.deleted_by or [])
    ]


async def listen_to_messages(session_factory, conversation_id: str, viewer_id: Optional[str], callback):
    return await change_feed.watch(
        messages_topic(conversation_id),
        session_factory,
        lambda db: list_messages(db, conversation_id, viewer_id),
        callback,
    )
