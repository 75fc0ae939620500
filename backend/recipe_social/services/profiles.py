"""Read-only enrichment from the profile and recipe collections.

Enrichment is cosmetic: every lookup degrades to a placeholder instead of
raising, so a missing row or a failing query never breaks a listing.
"""
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recipe_social.models.recipe import Recipe
from recipe_social.models.user import User
from recipe_social.utils.logger import log_failure

DEFAULT_DISPLAY_NAME = "User"
DEFAULT_POST_TITLE = "your post"


@dataclass(frozen=True)
class ProfileSummary:
    user_id: str
    display_name: str = DEFAULT_DISPLAY_NAME
    avatar_url: Optional[str] = None


def get_profile(db: Session, user_id: Optional[str]) -> ProfileSummary:
    if not user_id:
        return ProfileSummary(user_id="")
    try:
        user = db.get(User, user_id)
    except SQLAlchemyError as e:
        log_failure("Profile", f"fetching profile for {user_id}", e)
        return ProfileSummary(user_id=user_id)
    if user is None:
        return ProfileSummary(user_id=user_id)

    display_name = user.display_name
    if not display_name and user.email:
        display_name = user.email.split("@")[0]
    return ProfileSummary(
        user_id=user_id,
        display_name=display_name or DEFAULT_DISPLAY_NAME,
        avatar_url=user.avatar_url,
    )


def get_post_title(db: Session, post_id: Optional[str]) -> str:
    if not post_id:
        return DEFAULT_POST_TITLE
    try:
        recipe = db.get(Recipe, post_id)
    except SQLAlchemyError as e:
        log_failure("Profile", f"fetching recipe {post_id}", e)
        return DEFAULT_POST_TITLE
    if recipe is None or not recipe.title:
        return DEFAULT_POST_TITLE
    return recipe.title
