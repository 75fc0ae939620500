from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from recipe_social.db.session import get_db, commit_or_raise
from recipe_social.models.user import User
from recipe_social.schemas.user import ProfileResponse, DeviceTokenUpdate
from recipe_social.core.auth import get_current_user
from recipe_social.services.profiles import get_profile

router = APIRouter()

@router.get("/me", response_model=ProfileResponse)
async def get_me(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    profile = get_profile(db, current_user.id)
    return ProfileResponse(user_id=profile.user_id, display_name=profile.display_name, avatar_url=profile.avatar_url)

@router.get("/profile/{user_id}", response_model=ProfileResponse)
async def get_user_profile(user_id: str, db: Session = Depends(get_db)):
    """
    Public profile summary; unknown users come back as the placeholder profile
    """
    profile = get_profile(db, user_id)
    return ProfileResponse(user_id=profile.user_id, display_name=profile.display_name, avatar_url=profile.avatar_url)

@router.put("/device-token")
async def update_device_token(
    payload: DeviceTokenUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Register (or clear with null) the FCM token push notifications go to
    """
    current_user.fcm_token = payload.fcm_token or None
    commit_or_raise(db, "update device token")
    return {"message": "Device token updated"}
