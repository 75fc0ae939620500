"""Message log: send semantics, the last-message preview and conversation deletion."""

from __future__ import annotations

import unittest
from unittest import mock

from sqlalchemy import select

from recipe_social.core.exceptions import InvalidRequestError, NotFoundError, PermissionDeniedError
from recipe_social.models import Conversation, Message, MessageReaction, Notification, NotificationType
from recipe_social.services import follows, messages
from recipe_social.services.conversations import accept_message_request, ensure_conversation
from recipe_social.services.reactions import toggle_reaction

from support import Recorder, StoreTestCase


class SendMessageTests(StoreTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.conversation_id = await ensure_conversation(self.db, "xavier", "yara")

    def conversation(self) -> Conversation:
        return self.fresh(Conversation, self.conversation_id)

    async def test_first_message_lands_as_request_for_recipient(self) -> None:
        message_id = await messages.send_message(self.db, self.conversation_id, "xavier", "hello")

        conversation = self.conversation()
        self.assertFalse(conversation.member("xavier").is_request)
        self.assertTrue(conversation.member("yara").is_request)
        self.assertEqual(conversation.member("yara").unread_count, 1)
        self.assertEqual(conversation.member("xavier").unread_count, 0)
        self.assertEqual(conversation.request_to, "yara")
        self.assertEqual(conversation.last_message, "hello")

        message = self.db.get(Message, message_id)
        self.assertEqual(conversation.last_message_time, message.created_at)

        notifications = self.db.execute(select(Notification)).scalars().all()
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].type, NotificationType.message_request)
        self.assertEqual(notifications[0].recipient_user_id, "yara")
        self.assertEqual(notifications[0].message_thread_id, self.conversation_id)

    async def test_accepting_keeps_recipient_engaged(self) -> None:
        await messages.send_message(self.db, self.conversation_id, "xavier", "hello")

        await accept_message_request(self.db, self.conversation_id, "yara")
        await messages.send_message(self.db, self.conversation_id, "xavier", "still there?")

        conversation = self.conversation()
        self.assertFalse(conversation.member("yara").is_request)
        self.assertEqual(conversation.request_status.value, "accepted")
        # No new request notification once the thread is accepted
        self.assertEqual(len(self.db.execute(select(Notification)).scalars().all()), 1)

    async def test_reply_engages_sender_regardless_of_follows(self) -> None:
        await messages.send_message(self.db, self.conversation_id, "xavier", "hello")
        await follows.follow_user(self.db, "yara", "xavier")
        await follows.unfollow_user(self.db, "yara", "xavier")

        await messages.send_message(self.db, self.conversation_id, "yara", "hi back")

        conversation = self.conversation()
        self.assertFalse(conversation.member("yara").is_request)
        self.assertFalse(conversation.member("xavier").is_request)
        self.assertEqual(conversation.member("xavier").unread_count, 1)

    async def test_request_to_clears_when_recipient_follows_sender(self) -> None:
        self.add_follow_edge("yara", "xavier")

        await messages.send_message(self.db, self.conversation_id, "xavier", "hello")

        conversation = self.conversation()
        self.assertIsNone(conversation.request_to)
        self.assertFalse(conversation.member("yara").is_request)
        self.assertEqual(self.db.execute(select(Notification)).scalars().all(), [])

    async def test_unread_counter_accumulates(self) -> None:
        for text in ("one", "two", "three"):
            await messages.send_message(self.db, self.conversation_id, "xavier", text)
        self.assertEqual(self.conversation().member("yara").unread_count, 3)

    async def test_interleaved_sessions_keep_every_unread_increment(self) -> None:
        first, second = self.SessionLocal(), self.SessionLocal()
        try:
            # Both sessions hold the participant rows from before either send
            for session in (first, second):
                loaded = session.get(Conversation, self.conversation_id)
                self.assertEqual(loaded.member("yara").unread_count, 0)

            await messages.send_message(first, self.conversation_id, "xavier", "one")
            await messages.send_message(second, self.conversation_id, "xavier", "two")
        finally:
            first.close()
            second.close()

        self.assertEqual(self.conversation().member("yara").unread_count, 2)

    async def test_creation_times_strictly_increase(self) -> None:
        for text in ("a", "b", "c", "d", "e"):
            await messages.send_message(self.db, self.conversation_id, "xavier", text)

        listing = messages.list_messages(self.db, self.conversation_id, "yara")
        times = [m.created_at for m in listing]
        self.assertEqual([m.text for m in listing], ["a", "b", "c", "d", "e"])
        self.assertTrue(all(earlier < later for earlier, later in zip(times, times[1:])))

    async def test_attachment_only_message_uses_placeholder_preview(self) -> None:
        await messages.send_message(
            self.db, self.conversation_id, "xavier", "", attachments=[{"url": "https://img/1.jpg"}]
        )
        self.assertEqual(self.conversation().last_message, "Sent an image")

    async def test_send_requires_participant(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            await messages.send_message(self.db, self.conversation_id, "mallory", "hi")
        with self.assertRaises(NotFoundError):
            await messages.send_message(self.db, "missing", "xavier", "hi")
        with self.assertRaises(InvalidRequestError):
            await messages.send_message(self.db, self.conversation_id, "", "hi")

    async def test_send_survives_failing_request_notification(self) -> None:
        with mock.patch(
            "recipe_social.services.notifications.create_notification",
            side_effect=RuntimeError("feed down"),
        ):
            message_id = await messages.send_message(self.db, self.conversation_id, "xavier", "hello")

        self.assertIsNotNone(self.db.get(Message, message_id))
        conversation = self.conversation()
        self.assertEqual(conversation.member("yara").unread_count, 1)
        self.assertEqual(conversation.last_message, "hello")

    async def test_message_listener_receives_snapshots(self) -> None:
        recorder = Recorder()
        subscription = await messages.listen_to_messages(self.SessionLocal, self.conversation_id, "yara", recorder)

        await messages.send_message(self.db, self.conversation_id, "xavier", "hello")
        subscription.unsubscribe()
        await messages.send_message(self.db, self.conversation_id, "xavier", "unseen")

        self.assertEqual(recorder.calls[0], [])
        self.assertEqual([m.text for m in recorder.last], ["hello"])


class EditAndDeleteTests(StoreTestCase):
    async def asyncSetUp(self) -> None:
        await super().asyncSetUp()
        self.conversation_id = await ensure_conversation(self.db, "xavier", "yara")
        self.first = await messages.send_message(self.db, self.conversation_id, "xavier", "first")
        self.second = await messages.send_message(self.db, self.conversation_id, "yara", "second")
        self.third = await messages.send_message(self.db, self.conversation_id, "xavier", "third")

    def conversation(self) -> Conversation:
        return self.fresh(Conversation, self.conversation_id)

    async def test_editing_newest_message_moves_preview(self) -> None:
        edited = await messages.edit_message(self.db, self.conversation_id, self.third, "xavier", "  third, fixed ")

        self.assertEqual(edited.text, "third, fixed")
        self.assertTrue(edited.edited)
        self.assertIsNotNone(edited.edited_at)
        self.assertEqual(self.conversation().last_message, "third, fixed")

    async def test_editing_older_message_keeps_preview(self) -> None:
        await messages.edit_message(self.db, self.conversation_id, self.first, "xavier", "first, fixed")

        self.assertEqual(self.conversation().last_message, "third")
        self.assertEqual(self.db.get(Message, self.first).text, "first, fixed")

    async def test_only_sender_can_edit_or_delete(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            await messages.edit_message(self.db, self.conversation_id, self.first, "yara", "mine now")
        with self.assertRaises(PermissionDeniedError):
            await messages.delete_message(self.db, self.conversation_id, self.first, "yara")

    async def test_edit_requires_text(self) -> None:
        with self.assertRaises(InvalidRequestError):
            await messages.edit_message(self.db, self.conversation_id, self.first, "xavier", "   ")

    async def test_deleting_newest_message_rederives_preview(self) -> None:
        await messages.delete_message(self.db, self.conversation_id, self.third, "xavier")

        conversation = self.conversation()
        self.assertEqual(conversation.last_message, "second")
        self.assertEqual(conversation.last_message_time, self.db.get(Message, self.second).created_at)

    async def test_deleting_every_message_clears_preview(self) -> None:
        await messages.delete_message(self.db, self.conversation_id, self.third, "xavier")
        await messages.delete_message(self.db, self.conversation_id, self.second, "yara")
        await messages.delete_message(self.db, self.conversation_id, self.first, "xavier")

        conversation = self.conversation()
        self.assertEqual(conversation.last_message, "")
        self.assertIsNone(conversation.last_message_time)

    async def test_refresh_heals_stale_preview(self) -> None:
        conversation = self.conversation()
        conversation.last_message = "stale"
        self.db.commit()

        conversation = self.conversation()
        self.assertTrue(messages.refresh_last_message(self.db, conversation))
        self.assertEqual(conversation.last_message, "third")
        self.assertFalse(messages.refresh_last_message(self.db, conversation))

    async def test_hidden_message_disappears_for_that_viewer_only(self) -> None:
        await messages.hide_message_for(self.db, self.conversation_id, self.second, "xavier")
        await messages.hide_message_for(self.db, self.conversation_id, self.second, "xavier")

        xavier_view = [m.text for m in messages.list_messages(self.db, self.conversation_id, "xavier")]
        yara_view = [m.text for m in messages.list_messages(self.db, self.conversation_id, "yara")]
        self.assertEqual(xavier_view, ["first", "third"])
        self.assertEqual(yara_view, ["first", "second", "third"])
        self.assertEqual(self.db.get(Message, self.second).deleted_by, ["xavier"])

    async def test_delete_conversation_in_small_batches(self) -> None:
        for index in range(4):
            await messages.send_message(self.db, self.conversation_id, "yara", f"extra {index}")
        await toggle_reaction(self.db, self.conversation_id, self.first, "yara", "heart")

        with mock.patch("recipe_social.services.messages.commit_or_raise", wraps=messages.commit_or_raise) as commits:
            deleted = await messages.delete_conversation(self.db, self.conversation_id, "xavier", batch_size=3)

        self.assertEqual(deleted, 7)
        batch_commits = [c for c in commits.call_args_list if c.args[1] == "delete conversation messages"]
        self.assertEqual(len(batch_commits), 3)
        self.assertIsNone(self.fresh(Conversation, self.conversation_id))
        self.assertEqual(self.db.execute(select(Message)).scalars().all(), [])
        self.assertEqual(self.db.execute(select(MessageReaction)).scalars().all(), [])

    async def test_delete_conversation_checks_membership_and_batch_size(self) -> None:
        with self.assertRaises(PermissionDeniedError):
            await messages.delete_conversation(self.db, self.conversation_id, "mallory")
        with self.assertRaises(InvalidRequestError):
            await messages.delete_conversation(self.db, self.conversation_id, "xavier", batch_size=-1)


if __name__ == "__main__":
    unittest.main()
