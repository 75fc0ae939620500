from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker, declarative_base
from recipe_social.core.config import settings
from recipe_social.core.exceptions import StoreError

db_url_lower = settings.DATABASE_URL.lower()
is_postgres = "postgresql" in db_url_lower or "postgres" in db_url_lower
is_sqlite = db_url_lower.startswith("sqlite")

connect_args = {}
if is_postgres:
    # Emoji reactions and message text need UTF-8 end to end
    connect_args["client_encoding"] = "UTF8"
elif is_sqlite:
    # WebSocket handlers and request handlers share the file across threads
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
    echo=False  # Set to True for SQL query debugging
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def commit_or_raise(db: Session, action: str) -> None:
    """Commit the pending unit of work, turning store failures into StoreError."""
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(f"Failed to {action}: {str(e)}") from e
