from sqlalchemy import Column, String, DateTime
from recipe_social.db.session import Base
from recipe_social.utils.timestamps import utcnow

class Recipe(Base):
    """Only the recipe fields notification text needs; recipe CRUD lives elsewhere."""
    __tablename__ = "recipes"

    id = Column(String(128), primary_key=True)
    author_id = Column(String(128), nullable=True)
    title = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
