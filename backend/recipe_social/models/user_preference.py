from sqlalchemy import Column, String, DateTime
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow

class UserPreference(Base):
    __tablename__ = "user_preferences"

    user_id = Column(String(128), primary_key=True)
    # Badge watermark: notifications created after this count toward the badge
    last_opened_notification_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
