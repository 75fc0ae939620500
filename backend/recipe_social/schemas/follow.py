from typing import Optional
from pydantic import BaseModel

class FollowResponse(BaseModel):
    follower_id: str
    following_id: str
    following: bool
    changed: bool

class FollowStatusResponse(BaseModel):
    follower_id: str
    following_id: str
    following: bool

class FollowCountsResponse(BaseModel):
    user_id: str
    followers: int
    following: int

class MessageableUserResponse(BaseModel):
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
