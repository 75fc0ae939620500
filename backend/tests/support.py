"""Shared fixtures: a fresh in-memory database per test and a clean change feed."""

from __future__ import annotations

import unittest

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from recipe_social.core.listeners import change_feed
from recipe_social.db.session import Base
from recipe_social.models import Follow, Recipe, User
import recipe_social.models  # noqa: F401  registers every table on Base.metadata


def make_engine():
    return create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


class StoreTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.engine = make_engine()
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False, future=True)
        self.db: Session = self.SessionLocal()
        change_feed._subscribers.clear()

    async def asyncTearDown(self) -> None:
        self.db.close()
        change_feed._subscribers.clear()
        Base.metadata.drop_all(self.engine)
        self.engine.dispose()

    def add_user(self, user_id: str, display_name: str | None = None, **fields) -> User:
        user = User(id=user_id, display_name=display_name, **fields)
        self.db.add(user)
        self.db.commit()
        return user

    def add_recipe(self, recipe_id: str, title: str | None, author_id: str = "owner") -> Recipe:
        recipe = Recipe(id=recipe_id, title=title, author_id=author_id)
        self.db.add(recipe)
        self.db.commit()
        return recipe

    def add_follow_edge(self, follower_id: str, following_id: str) -> None:
        """Insert a follow edge directly, without the follow side effects."""
        self.db.add(Follow(follower_id=follower_id, following_id=following_id))
        self.db.commit()

    def fresh(self, model, ident):
        self.db.expire_all()
        return self.db.get(model, ident)


class Recorder:
    """Async listener callback that keeps every delivered snapshot."""

    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, payload) -> None:
        self.calls.append(payload)

    @property
    def last(self):
        return self.calls[-1] if self.calls else None
