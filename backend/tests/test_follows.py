"""Follow graph: edge uniqueness, side effects and their failure isolation."""

from __future__ import annotations

import unittest
from unittest import mock

from sqlalchemy import select

from recipe_social.core.exceptions import InvalidRequestError
from recipe_social.models import Conversation, Follow, Notification, NotificationType
from recipe_social.services import follows
from recipe_social.services.conversations import find_conversation

from support import Recorder, StoreTestCase


class FollowServiceTests(StoreTestCase):
    async def test_follow_creates_edge_once_per_ordered_pair(self) -> None:
        self.assertTrue(await follows.follow_user(self.db, "alice", "bob"))
        self.assertFalse(await follows.follow_user(self.db, "alice", "bob"))

        edges = self.db.execute(select(Follow)).scalars().all()
        self.assertEqual(len(edges), 1)
        self.assertTrue(follows.is_following(self.db, "alice", "bob"))
        self.assertFalse(follows.is_following(self.db, "bob", "alice"))

    async def test_follow_rejects_missing_or_equal_ids(self) -> None:
        with self.assertRaises(InvalidRequestError):
            await follows.follow_user(self.db, "alice", "alice")
        with self.assertRaises(InvalidRequestError):
            await follows.follow_user(self.db, "", "bob")
        self.assertEqual(self.db.execute(select(Follow)).scalars().all(), [])

    def test_is_following_is_false_for_degenerate_ids(self) -> None:
        self.assertFalse(follows.is_following(self.db, "", "bob"))
        self.assertFalse(follows.is_following(self.db, "alice", "alice"))

    async def test_follow_bootstraps_conversation_and_notifies_target(self) -> None:
        await follows.follow_user(self.db, "alice", "bob")

        conversation = find_conversation(self.db, "alice", "bob")
        self.assertIsNotNone(conversation)
        self.assertFalse(conversation.member("alice").is_request)
        self.assertTrue(conversation.member("bob").is_request)

        notifications = self.db.execute(select(Notification)).scalars().all()
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].type, NotificationType.follow)
        self.assertEqual(notifications[0].recipient_user_id, "bob")
        self.assertEqual(notifications[0].actor_user_id, "alice")

    async def test_follow_survives_failing_side_effects(self) -> None:
        with mock.patch(
            "recipe_social.services.conversations.ensure_conversation",
            side_effect=RuntimeError("registry down"),
        ), mock.patch(
            "recipe_social.services.notifications.create_notification",
            side_effect=RuntimeError("feed down"),
        ):
            created = await follows.follow_user(self.db, "alice", "bob")

        self.assertTrue(created)
        self.assertTrue(follows.is_following(self.db, "alice", "bob"))
        self.assertEqual(self.db.execute(select(Conversation)).scalars().all(), [])

    async def test_unfollow_removes_edge_and_reports_missing_edge(self) -> None:
        await follows.follow_user(self.db, "alice", "bob")

        self.assertTrue(await follows.unfollow_user(self.db, "alice", "bob"))
        self.assertFalse(follows.is_following(self.db, "alice", "bob"))
        self.assertFalse(await follows.unfollow_user(self.db, "alice", "bob"))

    async def test_on_follow_change_reports_new_value_until_unsubscribed(self) -> None:
        recorder = Recorder()
        subscription = follows.on_follow_change("alice", "bob", recorder)

        await follows.follow_user(self.db, "alice", "bob")
        await follows.unfollow_user(self.db, "alice", "bob")
        subscription.unsubscribe()
        await follows.follow_user(self.db, "alice", "bob")

        self.assertEqual(recorder.calls, [True, False])

    async def test_follow_status_listener_sends_snapshot_then_changes(self) -> None:
        self.add_follow_edge("alice", "bob")
        recorder = Recorder()
        subscription = await follows.listen_to_follow_status(self.SessionLocal, "alice", "bob", recorder)

        await follows.unfollow_user(self.db, "alice", "bob")
        subscription.unsubscribe()
        await follows.follow_user(self.db, "alice", "bob")

        self.assertEqual(
            recorder.calls,
            [{"target_id": "bob", "following": True}, {"target_id": "bob", "following": False}],
        )

    async def test_counts_and_following_ids(self) -> None:
        self.add_follow_edge("alice", "bob")
        self.add_follow_edge("carol", "bob")
        self.add_follow_edge("bob", "alice")

        self.assertEqual(follows.get_follower_count(self.db, "bob"), 2)
        self.assertEqual(follows.get_following_count(self.db, "bob"), 1)
        self.assertEqual(follows.get_following_ids(self.db, "bob"), ["alice"])
        self.assertEqual(follows.get_follower_count(self.db, ""), 0)

    def test_messageable_users_carry_profiles_with_placeholder_fallback(self) -> None:
        self.add_user("bob", display_name="Bob", avatar_url="https://img/bob.png")
        self.add_follow_edge("alice", "bob")
        self.add_follow_edge("alice", "ghost")
        self.add_follow_edge("carol", "alice")

        users = {u.user_id: u for u in follows.list_messageable_users(self.db, "alice")}

        self.assertEqual(set(users), {"bob", "ghost"})
        self.assertEqual(users["bob"].display_name, "Bob")
        self.assertEqual(users["bob"].avatar_url, "https://img/bob.png")
        self.assertEqual(users["ghost"].display_name, "User")
        self.assertIsNone(users["ghost"].avatar_url)
        self.assertEqual(follows.list_messageable_users(self.db, ""), [])


if __name__ == "__main__":
    unittest.main()
