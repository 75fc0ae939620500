from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    DATABASE_URL: str = Field(default="sqlite:///./recipe_social.db", description="Database connection string")
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
        description="Origins allowed by CORS and echoed back on error responses"
    )

    # Messaging core
    MESSAGE_DELETE_BATCH_SIZE: int = Field(default=500, description="Max messages removed per commit when deleting a conversation")
    ATTACHMENT_PREVIEW_TEXT: str = Field(default="Sent an image", description="Conversation preview for attachment-only messages")

    # Notification feed
    NOTIFICATION_PAGE_SIZE: int = Field(default=50, description="Default number of notifications returned per listing")
    MARK_ALL_READ_LIMIT: int = Field(default=500, description="Max notifications flipped by one mark-all-as-read call")
    PUSH_NOTIFICATIONS_ENABLED: bool = Field(default=True, description="Send FCM pushes for new notifications when a device token is known")

    # Firebase service account (identity + push); unset fields fall back to application default credentials
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY_ID: Optional[str] = None
    FIREBASE_PRIVATE_KEY: Optional[str] = None
    FIREBASE_CLIENT_EMAIL: Optional[str] = None
    FIREBASE_CLIENT_ID: Optional[str] = None
    FIREBASE_TOKEN_URI: str = "https://oauth2.googleapis.com/token"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
