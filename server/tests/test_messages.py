import unittest

from helpers import seed_users
from studentnet.core.config import settings
from studentnet.core.exceptions import (
    EmptyMessageError,
    NotFoundError,
    NotParticipantError,
    PartialBatchFailure,
    WriteError,
)
from studentnet.db.memory import MemoryDocumentStore
from studentnet.services.conversation_service import ConversationService
from studentnet.services.message_service import MessageService


class MessageServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryDocumentStore()
        self.alice, self.bob, self.carol = await seed_users(self.store, "alice", "bob", "carol")
        self.conversations = ConversationService(self.store)
        self.messages = MessageService(self.store, self.conversations)
        self.thread = await self.conversations.ensure_thread(self.alice, "bob")

    async def test_send_appears_in_live_history(self):
        snapshots = []
        live = await self.messages.history(self.thread.id, snapshots.append)
        self.assertEqual(snapshots, [[]])

        sent = await self.messages.send(self.thread.id, self.alice, "  hello bob  ")
        self.assertEqual(sent.text, "hello bob")
        last = live.latest[-1]
        self.assertEqual(last.id, sent.id)
        self.assertEqual(last.sender_id, "alice")
        self.assertEqual(last.sender_name, "Alice")
        self.assertFalse(last.read)
        self.assertIsNotNone(last.timestamp)
        live.close()

    async def test_history_keeps_send_order(self):
        for text in ["one", "two", "three"]:
            await self.messages.send(self.thread.id, self.alice, text)
        await self.messages.send(self.thread.id, self.bob, "four")
        history = await self.messages.fetch_history(self.thread.id)
        self.assertEqual([m.text for m in history], ["one", "two", "three", "four"])
        stamps = [m.timestamp for m in history]
        self.assertEqual(stamps, sorted(stamps))

    async def test_whitespace_message_is_rejected_before_any_write(self):
        with self.assertRaises(EmptyMessageError):
            await self.messages.send(self.thread.id, self.alice, " \n\t ")
        with self.assertRaises(EmptyMessageError):
            await self.messages.send_direct(self.alice, "carol", "")
        self.assertEqual(self.store.op_counts[("put", settings.MONGODB_COLLECTION_MESSAGES)], 0)
        self.assertEqual(await self.messages.fetch_history(self.thread.id), [])
        self.assertEqual(len(await self.conversations.fetch_threads("carol")), 0)

    async def test_send_updates_thread_summary_and_counter(self):
        await self.messages.send(self.thread.id, self.alice, "a")
        await self.messages.send(self.thread.id, self.alice, "b")
        thread = await self.conversations.get_thread(self.thread.id)
        self.assertEqual(thread.last_message, "b")
        self.assertEqual(thread.last_message_sender, "alice")
        self.assertEqual(thread.unread_counts, {"alice": 0, "bob": 2})

    async def test_send_rejects_outsiders_and_unknown_threads(self):
        with self.assertRaises(NotParticipantError):
            await self.messages.send(self.thread.id, self.carol, "let me in")
        with self.assertRaises(NotFoundError):
            await self.messages.send("alice_carol", self.alice, "hi")
        with self.assertRaises(NotFoundError):
            await self.messages.fetch_history("alice_carol")

    async def test_failed_send_leaves_no_message(self):
        self.store.fail_on("update", settings.MONGODB_COLLECTION_CHATS)
        with self.assertRaises(WriteError):
            await self.messages.send(self.thread.id, self.alice, "lost")
        self.assertEqual(await self.messages.fetch_history(self.thread.id), [])

    async def test_send_direct_creates_thread_once(self):
        first = await self.messages.send_direct(self.alice, "carol", "hey")
        second = await self.messages.send_direct(self.carol, "alice", "hey back")
        self.assertEqual(first.thread_id, "alice_carol")
        self.assertEqual(second.thread_id, "alice_carol")
        history = await self.messages.fetch_history("alice_carol")
        self.assertEqual([m.text for m in history], ["hey", "hey back"])

    async def test_mark_read_is_idempotent(self):
        await self.messages.send(self.thread.id, self.alice, "one")
        await self.messages.send(self.thread.id, self.alice, "two")
        await self.messages.send(self.thread.id, self.bob, "mine")

        result = await self.messages.mark_read(self.thread.id, "bob")
        self.assertEqual(result.applied, 2)
        self.assertEqual(result.failed, 0)
        history = await self.messages.fetch_history(self.thread.id)
        self.assertEqual([m.read for m in history], [True, True, False])
        self.assertIsNotNone(history[0].read_time)

        again = await self.messages.mark_read(self.thread.id, "bob")
        self.assertEqual(again.applied, 0)
        thread = await self.conversations.get_thread(self.thread.id)
        self.assertEqual(thread.unread_counts["bob"], 0)
        self.assertEqual(thread.unread_counts["alice"], 1)

    async def test_mark_read_collects_partial_failures(self):
        for text in ["one", "two", "three"]:
            await self.messages.send(self.thread.id, self.alice, text)
        self.store.fail_on("update", settings.MONGODB_COLLECTION_MESSAGES, call_number=2)

        result = await self.messages.mark_read(self.thread.id, "bob")
        self.assertEqual(result.applied, 2)
        self.assertEqual(result.failed, 1)
        self.assertIsInstance(result.failures[0], PartialBatchFailure)
        self.assertIsInstance(result.failures[0].cause, WriteError)
        history = await self.messages.fetch_history(self.thread.id)
        self.assertEqual(result.failures[0].document_id, history[1].id)
        self.assertEqual([m.read for m in history], [True, False, True])
        thread = await self.conversations.get_thread(self.thread.id)
        self.assertEqual(thread.unread_counts["bob"], 1)

        retry = await self.messages.mark_read(self.thread.id, "bob")
        self.assertEqual(retry.applied, 1)
        thread = await self.conversations.get_thread(self.thread.id)
        self.assertEqual(thread.unread_counts["bob"], 0)

    async def test_mark_read_by_outsider(self):
        with self.assertRaises(NotParticipantError):
            await self.messages.mark_read(self.thread.id, "carol")

    async def test_history_stops_after_close(self):
        snapshots = []
        live = await self.messages.history(self.thread.id, snapshots.append)
        await self.messages.send(self.thread.id, self.alice, "seen")
        live.close()
        live.close()
        await self.messages.send(self.thread.id, self.alice, "unseen")
        self.assertEqual(len(snapshots), 2)
        self.assertEqual(self.store.listener_count, 0)

        live = await self.messages.history(self.thread.id)
        self.assertEqual([m.text for m in live.latest], ["seen", "unseen"])
        live.close()


if __name__ == "__main__":
    unittest.main()
