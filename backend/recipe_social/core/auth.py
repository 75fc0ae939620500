from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from recipe_social.core.firebase import firebase_service
from recipe_social.db.session import get_db, commit_or_raise
from recipe_social.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db)
) -> User:
    """
    Resolve the Firebase ID token to a users row, creating the row on first sign-in.
    """
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = firebase_service.verify_token(credentials.credentials)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = db.query(User).filter(User.id == claims["uid"]).first()
    if not user:
        user = User(
            id=claims["uid"],
            email=claims.get("email"),
            display_name=claims.get("name"),
            avatar_url=claims.get("picture"),
        )
        db.add(user)
        commit_or_raise(db, "register user")
        db.refresh(user)
    return user
