from typing import Optional
from pydantic import BaseModel

class ProfileResponse(BaseModel):
    user_id: str
    display_name: str = "User"
    avatar_url: Optional[str] = None

class DeviceTokenUpdate(BaseModel):
    fcm_token: Optional[str] = None
