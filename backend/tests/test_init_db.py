"""Schema sync used by init_db."""

from __future__ import annotations

import unittest

from sqlalchemy import inspect, text

from recipe_social.db.session import Base
from recipe_social.init_db import add_missing_columns, create_missing_tables

from support import make_engine


class InitDbTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine()

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_create_then_sync_is_a_no_op(self) -> None:
        create_missing_tables(bind=self.engine)
        self.assertEqual(add_missing_columns(bind=self.engine), [])
        self.assertTrue(set(Base.metadata.tables).issubset(inspect(self.engine).get_table_names()))

    def test_sync_adds_columns_and_missing_tables(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(text(
                "CREATE TABLE follows (id VARCHAR(36) PRIMARY KEY, "
                "follower_id VARCHAR(128) NOT NULL, following_id VARCHAR(128) NOT NULL)"
            ))

        added = add_missing_columns(bind=self.engine)

        self.assertEqual(added, ["follows.created_at"])
        self.assertIn("conversations", inspect(self.engine).get_table_names())


if __name__ == "__main__":
    unittest.main()
