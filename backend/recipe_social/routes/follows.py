from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from recipe_social.db.session import get_db
from recipe_social.models.user import User
from typing import List
from recipe_social.schemas.follow import (
    FollowCountsResponse,
    FollowResponse,
    FollowStatusResponse,
    MessageableUserResponse,
)
from recipe_social.core.auth import get_current_user
from recipe_social.services import follows
from recipe_social.utils.logger import safe_print

router = APIRouter()

@router.get("/messageable", response_model=List[MessageableUserResponse])
async def messageable_users(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """People the current user follows, for starting a conversation"""
    return [
        MessageableUserResponse(
            user_id=profile.user_id,
            display_name=profile.display_name,
            avatar_url=profile.avatar_url,
        )
        for profile in follows.list_messageable_users(db, current_user.id)
    ]

@router.post("/{target_id}", response_model=FollowResponse)
async def follow(
    target_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Follow a user. Also opens (or re-evaluates) the conversation between the
    two users and notifies the target.
    """
    safe_print(f"POST /follows/{target_id} by {current_user.id}")
    changed = await follows.follow_user(db, current_user.id, target_id)
    return FollowResponse(
        follower_id=current_user.id,
        following_id=target_id,
        following=True,
        changed=changed,
    )

@router.delete("/{target_id}", response_model=FollowResponse)
async def unfollow(
    target_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    safe_print(f"DELETE /follows/{target_id} by {current_user.id}")
    changed = await follows.unfollow_user(db, current_user.id, target_id)
    return FollowResponse(
        follower_id=current_user.id,
        following_id=target_id,
        following=False,
        changed=changed,
    )

@router.get("/{target_id}/status", response_model=FollowStatusResponse)
async def follow_status(
    target_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return FollowStatusResponse(
        follower_id=current_user.id,
        following_id=target_id,
        following=follows.is_following(db, current_user.id, target_id),
    )

@router.get("/{user_id}/counts", response_model=FollowCountsResponse)
async def follow_counts(user_id: str, db: Session = Depends(get_db)):
    return FollowCountsResponse(
        user_id=user_id,
        followers=follows.get_follower_count(db, user_id),
        following=follows.get_following_count(db, user_id),
    )
