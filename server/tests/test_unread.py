import unittest

from helpers import seed_users
from studentnet.core.config import settings
from studentnet.core.exceptions import StoreError
from studentnet.db.memory import MemoryDocumentStore
from studentnet.services.conversation_service import ConversationService
from studentnet.services.message_service import MessageService
from studentnet.services.notification_service import NotificationService
from studentnet.services.unread_service import BadgeCounts, UnreadService


class UnreadServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryDocumentStore()
        self.alice, self.bob, self.carol = await seed_users(self.store, "alice", "bob", "carol")
        self.conversations = ConversationService(self.store)
        self.notifications = NotificationService(self.store)
        self.messages = MessageService(self.store, self.conversations)
        self.unread = UnreadService(self.store, self.conversations, self.notifications)

    async def test_badges_follow_messages_and_notifications(self):
        with_alice = await self.conversations.ensure_thread(self.bob, "alice")
        with_carol = await self.conversations.ensure_thread(self.bob, "carol")
        await self.notifications.emit("bob", "event_invite")
        await self.notifications.emit("bob", "job_recommendation")

        live = await self.unread.badge_counts("bob")
        self.assertEqual(live.latest, BadgeCounts(messages=0, notifications=2))

        await self.messages.send(with_alice.id, self.alice, "hi")
        await self.messages.send(with_alice.id, self.alice, "you there?")
        await self.messages.send(with_carol.id, self.carol, "hello")
        self.assertEqual(live.latest.messages, 3)

        await self.messages.mark_read(with_alice.id, "bob")
        self.assertEqual(live.latest.messages, 1)

        await self.notifications.mark_all_read("bob")
        self.assertEqual(live.latest, BadgeCounts(messages=1, notifications=0))

        live.close()
        self.assertEqual(self.store.listener_count, 0)
        await self.notifications.emit("bob", "message")
        self.assertEqual(live.latest.notifications, 0)

    async def test_own_messages_do_not_count(self):
        thread = await self.conversations.ensure_thread(self.alice, "bob")
        await self.messages.send(thread.id, self.alice, "hi")
        counts = await self.unread.fetch_badge_counts("alice")
        self.assertEqual(counts, BadgeCounts(messages=0, notifications=0))
        counts = await self.unread.fetch_badge_counts("bob")
        self.assertEqual(counts.messages, 1)

    async def test_long_lived_badges_do_not_accumulate_snapshots(self):
        thread = await self.conversations.ensure_thread(self.alice, "bob")
        seen = []
        live = await self.unread.badge_counts("bob", seen.append)
        for i in range(100):
            await self.messages.send(thread.id, self.alice, f"message {i}")
        self.assertEqual(live.latest.messages, 100)
        self.assertEqual(len(seen), 101)
        self.assertEqual(live.pending, 1)
        self.assertLessEqual(live._threads.pending, 1)
        self.assertLessEqual(live._unread.pending, 1)
        live.close()

    async def test_lost_notification_stream_ends_badges(self):
        errors = []
        live = await self.unread.badge_counts("bob", on_error=errors.append)
        self.assertEqual(await live.first(), BadgeCounts())

        self.store.drop_subscriptions(settings.MONGODB_COLLECTION_NOTIFICATIONS)
        with self.assertRaises(StoreError):
            await live.first()
        self.assertEqual(len(errors), 1)
        self.assertIsInstance(live.error, StoreError)

        live.close()
        self.assertEqual(self.store.listener_count, 0)

    async def test_badge_stream_iterates(self):
        async with await self.unread.badge_counts("carol") as live:
            self.assertEqual(await live.first(), BadgeCounts())
            await self.notifications.emit("carol", "event_invite")
            self.assertEqual(await live.first(), BadgeCounts(messages=0, notifications=1))
        self.assertFalse(live.is_open)


if __name__ == "__main__":
    unittest.main()
