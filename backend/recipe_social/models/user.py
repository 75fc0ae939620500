from sqlalchemy import Column, String, DateTime
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow

class User(Base):
    """Profile row for a Firebase identity. Read-only to the messaging core except for get-or-create on sign-in."""
    __tablename__ = "users"

    id = Column(String(128), primary_key=True)  # Firebase uid
    email = Column(String, nullable=True)
    display_name = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    fcm_token = Column(String, nullable=True)  # last registered device for push
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<User id={self.id} display_name={self.display_name}>"
