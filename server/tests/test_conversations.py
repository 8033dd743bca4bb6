import unittest

from helpers import seed_users
from studentnet.core.config import settings
from studentnet.core.exceptions import MalformedThreadError, NotFoundError
from studentnet.db.memory import MemoryDocumentStore
from studentnet.models.conversation import Conversation
from studentnet.services.conversation_service import ConversationService, other_participant, unread_for
from studentnet.services.message_service import MessageService


class ConversationServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryDocumentStore()
        self.alice, self.bob, self.carol = await seed_users(self.store, "alice", "bob", "carol")
        self.conversations = ConversationService(self.store)
        self.messages = MessageService(self.store, self.conversations)

    async def test_ensure_thread_is_idempotent_and_symmetric(self):
        first = await self.conversations.ensure_thread(self.bob, "alice")
        second = await self.conversations.ensure_thread(self.alice, "bob")
        self.assertEqual(first.id, "alice_bob")
        self.assertEqual(second.id, first.id)
        self.assertEqual(second.created_at, first.created_at)
        self.assertEqual(first.participants, ["alice", "bob"])
        self.assertEqual(first.unread_counts, {"alice": 0, "bob": 0})
        self.assertEqual(first.last_message, "")
        docs = await self.store.query(settings.MONGODB_COLLECTION_CHATS)
        self.assertEqual(len(docs), 1)

    async def test_ensure_thread_with_unknown_user(self):
        with self.assertRaises(NotFoundError):
            await self.conversations.ensure_thread(self.alice, "nobody")
        with self.assertRaises(NotFoundError):
            await self.conversations.get_thread("alice_nobody")

    async def test_other_participant(self):
        thread = await self.conversations.ensure_thread(self.alice, "bob")
        other = other_participant(thread, "alice")
        self.assertEqual(other.id, "bob")
        self.assertEqual(other.name, "Bob")
        self.assertEqual(other.photo_url, "https://img.example/bob.png")
        self.assertEqual(ConversationService.other_participant(thread, "bob").id, "alice")

    def test_other_participant_rejects_malformed_threads(self):
        for participants, self_id in [(["a"], "a"), (["a", "b", "c"], "a"), (["a", "a"], "a"), (["a", "b"], "c")]:
            thread = Conversation(id="t", participants=participants)
            with self.assertRaises(MalformedThreadError):
                other_participant(thread, self_id)

    def test_other_participant_without_cached_name(self):
        thread = Conversation(id="a_b", participants=["a", "b"])
        self.assertEqual(other_participant(thread, "a").name, "Unknown User")
        self.assertEqual(unread_for(thread, "a"), 0)

    async def test_threads_ordered_by_latest_message(self):
        with_bob = await self.conversations.ensure_thread(self.alice, "bob")
        with_carol = await self.conversations.ensure_thread(self.alice, "carol")

        snapshots = []
        live = await self.conversations.list_threads("alice", snapshots.append)
        self.assertEqual([t.id for t in live.latest], [with_carol.id, with_bob.id])

        await self.messages.send(with_bob.id, self.alice, "hi bob")
        self.assertEqual([t.id for t in live.latest], [with_bob.id, with_carol.id])
        self.assertEqual(live.latest[0].last_message, "hi bob")
        self.assertEqual(live.latest[0].last_message_sender, "alice")

        await self.messages.send(with_carol.id, self.carol, "hi alice")
        self.assertEqual([t.id for t in live.latest], [with_carol.id, with_bob.id])
        self.assertEqual(unread_for(live.latest[0], "alice"), 1)

        live.close()
        count = len(snapshots)
        await self.messages.send(with_bob.id, self.bob, "still there?")
        self.assertEqual(len(snapshots), count)
        self.assertEqual(self.store.listener_count, 0)

    async def test_threads_only_include_participant(self):
        await self.conversations.ensure_thread(self.alice, "bob")
        self.assertEqual(await self.conversations.fetch_threads("carol"), [])
        self.assertEqual(len(await self.conversations.fetch_threads("bob")), 1)


if __name__ == "__main__":
    unittest.main()
