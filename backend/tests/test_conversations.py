"""Conversation registry: pair uniqueness, the engagement latch and read state."""

from __future__ import annotations

import unittest

from sqlalchemy import select

from recipe_social.core.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from recipe_social.models import Conversation, ConversationParticipant, Message, RequestStatus
from recipe_social.services import conversations, follows
from recipe_social.services.messages import send_message

from support import Recorder, StoreTestCase


class ConversationRegistryTests(StoreTestCase):
    async def test_ensure_conversation_is_unique_per_unordered_pair(self) -> None:
        first = await conversations.ensure_conversation(self.db, "alice", "bob")
        second = await conversations.ensure_conversation(self.db, "bob", "alice")
        third = await conversations.ensure_conversation(self.db, "alice", "bob")

        self.assertEqual(first, second)
        self.assertEqual(first, third)
        self.assertEqual(len(self.db.execute(select(Conversation)).scalars().all()), 1)

    async def test_ensure_conversation_rejects_self_and_missing_ids(self) -> None:
        with self.assertRaises(InvalidRequestError):
            await conversations.ensure_conversation(self.db, "alice", "alice")
        with self.assertRaises(InvalidRequestError):
            await conversations.ensure_conversation(self.db, "alice", "")

    async def test_new_conversation_derives_request_flags_from_follows(self) -> None:
        self.add_follow_edge("alice", "bob")

        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertFalse(conversation.member("alice").is_request)
        self.assertTrue(conversation.member("alice").has_engaged)
        self.assertTrue(conversation.member("bob").is_request)
        self.assertEqual(conversation.request_status, RequestStatus.pending)
        self.assertEqual(conversation.last_message, "")
        self.assertIsNone(conversation.last_message_time)
        self.assertEqual(conversation.member("bob").unread_count, 0)

    async def test_ensure_conversation_recomputes_only_pending_sides(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        self.add_follow_edge("bob", "alice")

        await conversations.ensure_conversation(self.db, "alice", "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertFalse(conversation.member("bob").is_request)
        self.assertTrue(conversation.member("alice").is_request)

    async def test_engagement_survives_unfollow(self) -> None:
        await follows.follow_user(self.db, "alice", "bob")
        conversation_id = conversations.find_conversation(self.db, "alice", "bob").id

        await follows.unfollow_user(self.db, "alice", "bob")
        await conversations.ensure_conversation(self.db, "alice", "bob")

        conversation = self.fresh(Conversation, conversation_id)
        self.assertFalse(conversation.member("alice").is_request)

    async def test_ensure_conversation_repairs_missing_participant_row(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        self.db.execute(
            ConversationParticipant.__table__.delete().where(
                ConversationParticipant.user_id == "bob"
            )
        )
        self.db.commit()
        self.db.close()
        self.db = self.SessionLocal()

        await conversations.ensure_conversation(self.db, "alice", "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertIsNotNone(conversation.member("bob"))
        self.assertTrue(conversation.member("bob").is_request)
        self.assertEqual(conversation.member("bob").unread_count, 0)

    async def test_accept_latches_viewer_and_recomputes_request_to(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        await send_message(self.db, conversation_id, "alice", "hi")

        await conversations.accept_message_request(self.db, conversation_id, "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertFalse(conversation.member("bob").is_request)
        self.assertTrue(conversation.member("bob").has_engaged)
        self.assertEqual(conversation.request_status, RequestStatus.accepted)
        # alice does not follow bob, so bob's side is still waiting on her
        self.assertEqual(conversation.request_to, "alice")

    async def test_accept_clears_request_to_when_other_side_follows_viewer(self) -> None:
        self.add_follow_edge("alice", "bob")
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")

        await conversations.accept_message_request(self.db, conversation_id, "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertIsNone(conversation.request_to)

    async def test_accept_requires_participant(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        with self.assertRaises(PermissionDeniedError):
            await conversations.accept_message_request(self.db, conversation_id, "mallory")
        with self.assertRaises(NotFoundError):
            await conversations.accept_message_request(self.db, "missing", "bob")

    async def test_ignore_only_changes_status(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        await send_message(self.db, conversation_id, "alice", "hi")

        await conversations.ignore_message_request(self.db, conversation_id, "bob")
        conversation = self.fresh(Conversation, conversation_id)

        self.assertEqual(conversation.request_status, RequestStatus.ignored)
        self.assertTrue(conversation.member("bob").is_request)
        self.assertEqual(conversation.member("bob").unread_count, 1)
        self.assertEqual(conversation.last_message, "hi")

    async def test_mark_seen_resets_viewer_and_is_idempotent(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        await send_message(self.db, conversation_id, "alice", "one")
        await send_message(self.db, conversation_id, "alice", "two")
        await send_message(self.db, conversation_id, "bob", "three")

        marked = await conversations.mark_messages_as_seen(self.db, conversation_id, "bob")
        conversation = self.fresh(Conversation, conversation_id)
        self.assertEqual(marked, 2)
        self.assertEqual(conversation.member("bob").unread_count, 0)
        self.assertIsNotNone(conversation.member("bob").last_seen_at)
        # alice's side is untouched
        self.assertEqual(conversation.member("alice").unread_count, 1)
        self.assertIsNone(conversation.member("alice").last_seen_at)

        again = await conversations.mark_messages_as_seen(self.db, conversation_id, "bob")
        conversation = self.fresh(Conversation, conversation_id)
        self.assertEqual(again, 0)
        self.assertEqual(conversation.member("bob").unread_count, 0)

        messages = self.db.execute(select(Message).where(Message.sender_id == "alice")).scalars().all()
        self.assertTrue(all(m.seen_by == ["bob"] for m in messages))
        own = self.db.execute(select(Message).where(Message.sender_id == "bob")).scalars().one()
        self.assertEqual(own.seen_by, [])

    async def test_unread_conversation_count_counts_threads(self) -> None:
        with_bob = await conversations.ensure_conversation(self.db, "alice", "bob")
        with_carol = await conversations.ensure_conversation(self.db, "alice", "carol")
        await send_message(self.db, with_bob, "bob", "one")
        await send_message(self.db, with_bob, "bob", "two")
        await send_message(self.db, with_carol, "carol", "hey")

        self.assertEqual(conversations.count_unread_conversations(self.db, "alice"), 2)
        await conversations.mark_messages_as_seen(self.db, with_carol, "alice")
        self.assertEqual(conversations.count_unread_conversations(self.db, "alice"), 1)
        self.assertEqual(conversations.count_unread_conversations(self.db, ""), 0)

    async def test_unread_count_listener_follows_changes(self) -> None:
        conversation_id = await conversations.ensure_conversation(self.db, "alice", "bob")
        recorder = Recorder()
        subscription = await conversations.listen_to_unread_count(self.SessionLocal, "bob", recorder)

        await send_message(self.db, conversation_id, "alice", "hi")
        await conversations.mark_messages_as_seen(self.db, conversation_id, "bob")
        subscription.unsubscribe()
        await send_message(self.db, conversation_id, "alice", "again")

        self.assertEqual(recorder.calls[0], 0)
        self.assertIn(1, recorder.calls)
        self.assertEqual(recorder.last, 0)

    async def test_user_conversations_are_enriched_and_sorted_by_activity(self) -> None:
        self.add_user("bob", display_name="Bob")
        older = await conversations.ensure_conversation(self.db, "alice", "bob")
        newer = await conversations.ensure_conversation(self.db, "alice", "ghost")
        await send_message(self.db, older, "bob", "first")
        await send_message(self.db, newer, "ghost", "second")

        listing = conversations.list_user_conversations(self.db, "alice")

        self.assertEqual([c.id for c in listing], [newer, older])
        self.assertEqual(listing[0].other_user.display_name, "User")
        self.assertIsNone(listing[0].other_user.avatar_url)
        self.assertEqual(listing[1].other_user.display_name, "Bob")
        self.assertEqual(listing[1].unread_count["alice"], 1)
        self.assertEqual(listing[1].is_request, {"alice": True, "bob": False})


if __name__ == "__main__":
    unittest.main()
