"""
Conversation registry.

Exactly one conversation exists per unordered pair of users. Each side keeps
its own request classification: a viewer sees the thread as a request until
they engage (follow the other side, reply, or accept), and engagement is a
one-way latch held in ``ConversationParticipant.has_engaged``.
"""
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from recipe_social.core.exceptions import NotFoundError, PermissionDeniedError, StoreError
from recipe_social.core.listeners import change_feed, conversations_topic, messages_topic
from recipe_social.db.session import commit_or_raise
from recipe_social.models.conversation import Conversation, ConversationParticipant, RequestStatus
from recipe_social.models.message import Message, MessageStatus
from recipe_social.schemas.conversation import ConversationResponse
from recipe_social.schemas.user import ProfileResponse
from recipe_social.services.follows import is_following, validate_pair
from recipe_social.services.profiles import get_profile
from recipe_social.utils.logger import log_event
from recipe_social.utils.timestamps import utcnow


def participant_key(first_id: str, second_id: str) -> str:
    low, high = sorted((first_id, second_id))
    return f"{low}:{high}"


def find_conversation(db: Session, first_id: str, second_id: str) -> Optional[Conversation]:
    """Exact two-member match; a conversation merely containing one of the users is not a hit."""
    pair = sorted((first_id, second_id))
    candidates = db.execute(
        select(Conversation).where(Conversation.participant_key == participant_key(first_id, second_id))
    ).scalars().all()
    for conversation in candidates:
        if sorted(conversation.participants or []) == pair:
            return conversation
    return None


def get_conversation(db: Session, conversation_id: str) -> Conversation:
    if not conversation_id:
        raise NotFoundError("Conversation ID is required")
    conversation = db.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"Conversation {conversation_id} not found")
    return conversation


def require_participant(conversation: Conversation, user_id: str) -> ConversationParticipant:
    state = conversation.member(user_id)
    if state is None:
        raise PermissionDeniedError("Not a participant of this conversation")
    return state


def engage(state: ConversationParticipant) -> None:
    state.has_engaged = True
    state.is_request = False


def recompute_request(db: Session, state: ConversationParticipant, other_id: str) -> bool:
    """
    Re-derive one side's request flag from follow state, respecting the latch.
    Returns True when the stored value changed.
    """
    before = (state.is_request, state.has_engaged)
    if state.has_engaged or state.is_request is False:
        engage(state)
    elif is_following(db, state.user_id, other_id):
        engage(state)
    else:
        state.is_request = True
    return (state.is_request, state.has_engaged) != before


async def publish_conversation_change(conversation: Conversation, include_messages: bool = False) -> None:
    for user_id in list(conversation.participants or []):
        await change_feed.publish(conversations_topic(user_id), conversation.id)
    if include_messages:
        await change_feed.publish(messages_topic(conversation.id), conversation.id)


async def ensure_conversation(db: Session, first_id: str, second_id: str) -> str:
    """Get-or-create the conversation for the pair and return its id."""
    validate_pair(first_id, second_id)

    existing = find_conversation(db, first_id, second_id)
    if existing is not None:
        changed = False
        for user_id in existing.participants:
            state = existing.member(user_id)
            if state is None:
                # Repair a conversation whose participant row never got written
                state = ConversationParticipant(user_id=user_id, is_request=True, has_engaged=False, unread_count=0)
                existing.members.append(state)
                changed = True
            if recompute_request(db, state, existing.other_participant(user_id)):
                changed = True
        if changed:
            existing.updated_at = utcnow()
            commit_or_raise(db, "ensure conversation")
            await publish_conversation_change(existing)
        return existing.id

    conversation = Conversation(
        participant_key=participant_key(first_id, second_id),
        participants=sorted((first_id, second_id)),
        request_status=RequestStatus.pending,
        last_message="",
        last_message_time=None,
    )
    for user_id, other_id in ((first_id, second_id), (second_id, first_id)):
        follows_other = is_following(db, user_id, other_id)
        conversation.members.append(ConversationParticipant(
            user_id=user_id,
            is_request=not follows_other,
            has_engaged=follows_other,
            unread_count=0,
            last_seen_at=None,
        ))
    db.add(conversation)
    try:
        commit_or_raise(db, "ensure conversation")
    except StoreError:
        # Lost a create race on the unique pair key; the winner's record is the conversation
        winner = find_conversation(db, first_id, second_id)
        if winner is None:
            raise
        return winner.id

    log_event("Messaging", f"Created conversation {conversation.id} for {conversation.participants}")
    await publish_conversation_change(conversation)
    return conversation.id


async def start_conversation(db: Session, current_user_id: str, target_user_id: str) -> str:
    return await ensure_conversation(db, current_user_id, target_user_id)


async def accept_message_request(db: Session, conversation_id: str, viewer_id: str) -> Conversation:
    conversation = get_conversation(db, conversation_id)
    viewer_state = require_participant(conversation, viewer_id)
    other_id = conversation.other_participant(viewer_id)
    other_state = conversation.member(other_id) if other_id else None
    if other_state is None:
        raise NotFoundError("Other participant not found")

    engage(viewer_state)
    recompute_request(db, other_state, viewer_id)
    other_follows_viewer = is_following(db, other_id, viewer_id)
    conversation.request_status = RequestStatus.accepted
    conversation.request_to = None if other_follows_viewer else other_id
    conversation.updated_at = utcnow()
    commit_or_raise(db, "accept message request")

    log_event("Messaging", f"Message request accepted for conversation {conversation_id}")
    await publish_conversation_change(conversation)
    return conversation


async def ignore_message_request(db: Session, conversation_id: str, viewer_id: str) -> Conversation:
    """Non-destructive: only the global status changes; flags and counters stay."""
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, viewer_id)
    conversation.request_status = RequestStatus.ignored
    conversation.updated_at = utcnow()
    commit_or_raise(db, "ignore message request")

    log_event("Messaging", f"Message request ignored for conversation {conversation_id}")
    await publish_conversation_change(conversation)
    return conversation


async def mark_messages_as_seen(db: Session, conversation_id: str, viewer_id: str) -> int:
    """
    Add the viewer to ``seen_by`` of every unseen incoming message, zero their
    unread counter and stamp their watermark, all in one commit. Returns the
    number of messages newly marked.
    """
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, viewer_id)

    incoming = db.execute(
        select(Message).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != viewer_id,
        )
    ).scalars().all()

    marked = 0
    for message in incoming:
        seen_by = list(message.seen_by or [])
        if viewer_id in seen_by:
            continue
        message.seen_by = seen_by + [viewer_id]
        message.status = MessageStatus.read
        marked += 1

    db.execute(
        update(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == viewer_id,
        )
        .values(unread_count=0, last_seen_at=utcnow())
    )
    commit_or_raise(db, "mark messages as seen")

    await change_feed.publish(conversations_topic(viewer_id), conversation_id)
    if marked:
        await change_feed.publish(messages_topic(conversation_id), conversation_id)
    return marked


def count_unread_conversations(db: Session, viewer_id: str) -> int:
    """Threads with anything unread for the viewer; one unit per thread, not per message."""
    if not viewer_id:
        return 0
    return db.execute(
        select(func.count()).select_from(ConversationParticipant).where(
            ConversationParticipant.user_id == viewer_id,
            ConversationParticipant.unread_count > 0,
        )
    ).scalar_one()


async def listen_to_unread_count(session_factory, viewer_id: str, callback):
    return await change_feed.watch(
        conversations_topic(viewer_id),
        session_factory,
        lambda db: count_unread_conversations(db, viewer_id),
        callback,
    )


def _participant_maps(conversation: Conversation):
    is_request: Dict[str, bool] = {}
    unread_count: Dict[str, int] = {}
    last_seen = {}
    for state in conversation.members:
        is_request[state.user_id] = state.is_request
        unread_count[state.user_id] = state.unread_count or 0
        if state.last_seen_at is not None:
            last_seen[state.user_id] = state.last_seen_at
    return is_request, unread_count, last_seen


def serialize_conversation(db: Session, conversation: Conversation, viewer_id: Optional[str] = None) -> ConversationResponse:
    is_request, unread_count, last_seen = _participant_maps(conversation)
    other_user = None
    if viewer_id:
        other_id = conversation.other_participant(viewer_id)
        if other_id:
            profile = get_profile(db, other_id)
            other_user = ProfileResponse(
                user_id=profile.user_id,
                display_name=profile.display_name,
                avatar_url=profile.avatar_url,
            )
    return ConversationResponse(
        id=conversation.id,
        participants=list(conversation.participants or []),
        is_request=is_request,
        request_status=conversation.request_status.value if conversation.request_status else RequestStatus.pending.value,
        request_to=conversation.request_to,
        unread_count=unread_count,
        last_seen_timestamp=last_seen,
        last_message=conversation.last_message or "",
        last_message_time=conversation.last_message_time,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
        other_user=other_user,
    )


def list_user_conversations(db: Session, viewer_id: str) -> List[ConversationResponse]:
    """The viewer's threads, newest activity first."""
    if not viewer_id:
        return []
    conversations = db.execute(
        select(Conversation)
        .join(ConversationParticipant, ConversationParticipant.conversation_id == Conversation.id)
        .where(ConversationParticipant.user_id == viewer_id)
    ).scalars().unique().all()

    def activity(conversation: Conversation):
        return conversation.last_message_time or conversation.updated_at or conversation.created_at

    conversations = sorted(conversations, key=lambda c: activity(c) or utcnow(), reverse=True)
    return [serialize_conversation(db, conversation, viewer_id) for conversation in conversations]


async def listen_to_user_conversations(session_factory, viewer_id: str, callback):
    return await change_feed.watch(
        conversations_topic(viewer_id),
        session_factory,
        lambda db: list_user_conversations(db, viewer_id),
        callback,
    )
