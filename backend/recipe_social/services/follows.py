"""
Relationship store: directed follow edges.

A follow is the primary action; the conversation bootstrap and the ``follow``
notification that come with it are side effects that are logged on failure
and never undo the follow.
"""
from typing import List

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from recipe_social.core.exceptions import InvalidRequestError, StoreError
from recipe_social.core.listeners import change_feed, follow_topic
from recipe_social.db.session import commit_or_raise
from recipe_social.models.follow import Follow
from recipe_social.services.profiles import ProfileSummary, get_profile
from recipe_social.utils.logger import log_event, log_failure


def validate_pair(first_id: str, second_id: str) -> None:
    if not first_id or not second_id:
        raise InvalidRequestError("Both user IDs are required")
    if first_id == second_id:
        raise InvalidRequestError("User IDs must be different")


def is_following(db: Session, follower_id: str, following_id: str) -> bool:
    if not follower_id or not following_id or follower_id == following_id:
        return False
    stmt = select(Follow.id).where(
        Follow.follower_id == follower_id,
        Follow.following_id == following_id,
    ).limit(1)
    return db.execute(stmt).first() is not None


async def follow_user(db: Session, follower_id: str, following_id: str) -> bool:
    """Create the edge once per ordered pair. Returns False when it already existed."""
    validate_pair(follower_id, following_id)
    if is_following(db, follower_id, following_id):
        return False

    db.add(Follow(follower_id=follower_id, following_id=following_id))
    try:
        commit_or_raise(db, "follow user")
    except StoreError as e:
        # A concurrent follow of the same pair won the unique constraint
        if isinstance(e.__cause__, IntegrityError):
            return False
        raise
    log_event("Follow", f"{follower_id} followed {following_id}")

    from recipe_social.services.conversations import ensure_conversation
    from recipe_social.services.notifications import create_notification, NotificationType

    try:
        await ensure_conversation(db, follower_id, following_id)
    except Exception as e:
        db.rollback()
        log_failure("Follow", "ensuring conversation on follow", e)

    try:
        await create_notification(db, following_id, follower_id, NotificationType.follow)
    except Exception as e:
        db.rollback()
        log_failure("Follow", "creating follow notification", e)

    await change_feed.publish(follow_topic(follower_id, following_id), True)
    return True


async def unfollow_user(db: Session, follower_id: str, following_id: str) -> bool:
    """Delete the edge if present. Engaged conversation state is left alone."""
    validate_pair(follower_id, following_id)
    edge = db.execute(
        select(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    ).scalars().first()
    if edge is None:
        return False

    db.delete(edge)
    commit_or_raise(db, "unfollow user")
    log_event("Follow", f"{follower_id} unfollowed {following_id}")
    await change_feed.publish(follow_topic(follower_id, following_id), False)
    return True


def on_follow_change(follower_id: str, following_id: str, callback):
    """Subscribe to changes of one edge; the callback receives the new is-following value."""
    return change_feed.subscribe(follow_topic(follower_id, following_id), callback)


async def listen_to_follow_status(session_factory, follower_id: str, following_id: str, callback):
    """Snapshot listener for one edge: the current value now, then after every follow or unfollow."""
    return await change_feed.watch(
        follow_topic(follower_id, following_id),
        session_factory,
        lambda db: {"target_id": following_id, "following": is_following(db, follower_id, following_id)},
        callback,
    )


def get_follower_count(db: Session, user_id: str) -> int:
    if not user_id:
        return 0
    return db.execute(select(func.count(Follow.id)).where(Follow.following_id == user_id)).scalar_one()


def get_following_count(db: Session, user_id: str) -> int:
    if not user_id:
        return 0
    return db.execute(select(func.count(Follow.id)).where(Follow.follower_id == user_id)).scalar_one()


def get_following_ids(db: Session, user_id: str) -> List[str]:
    """Users this user follows, i.e. the people they can message without it landing as a request for them."""
    if not user_id:
        return []
    stmt = select(Follow.following_id).where(Follow.follower_id == user_id).order_by(Follow.created_at.desc())
    return list(db.execute(stmt).scalars().all())


def list_messageable_users(db: Session, user_id: str) -> List[ProfileSummary]:
    """Profiles of followed users, newest follow first; missing profiles fall back to placeholders."""
    return [get_profile(db, following_id) for following_id in get_following_ids(db, user_id)]
