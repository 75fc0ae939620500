"""
Emoji reactions on messages.

Stored as one row per (message, reactor) so concurrent reactors never
clobber each other's tally; per-kind counts and "my reaction" are derived.
"""
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from recipe_social.core.exceptions import InvalidRequestError, NotFoundError
from recipe_social.core.listeners import change_feed, messages_topic
from recipe_social.db.session import commit_or_raise
from recipe_social.models.message import Message, MessageReaction, ReactionKind
from recipe_social.services.conversations import get_conversation, require_participant


def reaction_counts(reactions: Iterable[MessageReaction]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for reaction in reactions:
        kind = reaction.kind.value if isinstance(reaction.kind, ReactionKind) else str(reaction.kind)
        counts[kind] = counts.get(kind, 0) + 1
    return counts


def my_reaction(reactions: Iterable[MessageReaction], viewer_id: Optional[str]) -> Optional[str]:
    if not viewer_id:
        return None
    for reaction in reactions:
        if reaction.user_id == viewer_id:
            return reaction.kind.value if isinstance(reaction.kind, ReactionKind) else str(reaction.kind)
    return None


def _parse_kind(kind) -> ReactionKind:
    try:
        return ReactionKind(kind)
    except ValueError:
        allowed = ", ".join(k.value for k in ReactionKind)
        raise InvalidRequestError(f"Unknown reaction '{kind}'. Expected one of: {allowed}")


async def toggle_reaction(db: Session, conversation_id: str, message_id: str, reactor_id: str, kind) -> Optional[str]:
    """
    Same kind again clears the reactor's reaction, a different kind replaces
    it. Returns the reactor's reaction after the toggle.
    """
    kind = _parse_kind(kind)
    conversation = get_conversation(db, conversation_id)
    require_participant(conversation, reactor_id)
    message = db.get(Message, message_id)
    if message is None or message.conversation_id != conversation_id:
        raise NotFoundError(f"Message {message_id} not found")

    existing = db.execute(
        select(MessageReaction).where(
            MessageReaction.message_id == message_id,
            MessageReaction.user_id == reactor_id,
        )
    ).scalars().first()

    if existing is not None and existing.kind == kind:
        db.delete(existing)
        result = None
    elif existing is not None:
        existing.kind = kind
        result = kind.value
    else:
        db.add(MessageReaction(message_id=message_id, user_id=reactor_id, kind=kind))
        result = kind.value

    commit_or_raise(db, "update message reactions")
    await change_feed.publish(messages_topic(conversation_id), conversation_id)
    return result
