from sqlalchemy import Column, String, DateTime, UniqueConstraint, CheckConstraint, Index
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow
import uuid

class Follow(Base):
    __tablename__ = "follows"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    follower_id = Column(String(128), nullable=False)
    following_id = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    __table_args__ = (
        UniqueConstraint('follower_id', 'following_id', name='unique_follower_following'),
        CheckConstraint('follower_id <> following_id', name='no_self_follow'),
        Index('ix_follows_following_id', 'following_id'),
    )

    def __repr__(self):
        return f"<Follow follower_id={self.follower_id} following_id={self.following_id}>"
