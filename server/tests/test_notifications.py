import unittest

from helpers import seed_users
from studentnet.core.config import settings
from studentnet.core.exceptions import NotFoundError, WriteError
from studentnet.db.memory import MemoryDocumentStore
from studentnet.models.notification import Notification
from studentnet.services.notification_service import NotificationService, dispatch


def _notification(type: str, **payload) -> Notification:
    return Notification(id="n1", user_id="u", type=type, **payload)


class DispatchTests(unittest.TestCase):
    def test_fixed_routes(self):
        self.assertEqual(dispatch(_notification("connection_request")), "/network")
        self.assertEqual(dispatch(_notification("connection_accepted")), "/network")
        self.assertEqual(dispatch(_notification("message")), "/messages")
        self.assertEqual(dispatch(_notification("job_recommendation")), "/jobs")
        self.assertEqual(dispatch(_notification("event_invite")), "/events")

    def test_post_routes_need_post_id(self):
        self.assertEqual(dispatch(_notification("post_like", post_id="p42")), "/post/p42")
        self.assertEqual(dispatch(_notification("post_comment", post_id="p7")), "/post/p7")
        self.assertIsNone(dispatch(_notification("post_like")))

    def test_unknown_type_has_no_route(self):
        self.assertIsNone(dispatch(_notification("badge_earned")))
        self.assertIsNone(NotificationService.dispatch(_notification("")))


class NotificationServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryDocumentStore()
        self.alice, self.bob = await seed_users(self.store, "alice", "bob")
        self.service = NotificationService(self.store)

    async def test_emit_keeps_unknown_types_and_extra_payload(self):
        created = await self.service.emit("alice", "badge_earned", {"badge": "gold", "read": True, "user_id": "bob"})
        self.assertEqual(created.type, "badge_earned")
        self.assertEqual(created.user_id, "alice")
        self.assertFalse(created.read)
        self.assertEqual(created.model_extra["badge"], "gold")
        self.assertIsNotNone(created.timestamp)

    async def test_feed_is_newest_first_and_filterable(self):
        await self.service.emit("alice", "event_invite", {"event_id": "e1"})
        await self.service.emit("alice", "post_like", {"post_id": "p1"})
        await self.service.emit("bob", "post_like", {"post_id": "p2"})
        feed = await self.service.fetch_notifications("alice")
        self.assertEqual([n.type for n in feed], ["post_like", "event_invite"])
        likes = await self.service.fetch_notifications("alice", type="post_like")
        self.assertEqual([n.post_id for n in likes], ["p1"])

    async def test_live_unread_count(self):
        counts = []
        live = await self.service.unread_count("alice", counts.append)
        first = await self.service.emit("alice", "message")
        await self.service.emit("alice", "message")
        await self.service.emit("bob", "message")
        self.assertEqual(live.latest, 2)

        await self.service.mark_read(first.id, self.alice)
        self.assertEqual(counts, [0, 1, 2, 1])
        live.close()
        await self.service.emit("alice", "message")
        self.assertEqual(counts, [0, 1, 2, 1])

    async def test_mark_read_of_someone_elses_notification(self):
        notification = await self.service.emit("alice", "message")
        with self.assertRaises(NotFoundError):
            await self.service.mark_read(notification.id, self.bob)
        with self.assertRaises(NotFoundError):
            await self.service.mark_read("missing", self.alice)
        marked = await self.service.mark_read(notification.id, self.alice)
        self.assertTrue(marked.read)
        self.assertIsNotNone(marked.read_time)

    async def test_mark_all_read_is_atomic(self):
        for _ in range(4):
            await self.service.emit("alice", "message")
        self.store.fail_on("update", settings.MONGODB_COLLECTION_NOTIFICATIONS, call_number=2)
        with self.assertRaises(WriteError):
            await self.service.mark_all_read("alice")
        self.assertEqual(await self.service.fetch_unread_count("alice"), 4)

        self.assertEqual(await self.service.mark_all_read("alice"), 4)
        self.assertEqual(await self.service.fetch_unread_count("alice"), 0)
        self.assertEqual(await self.service.mark_all_read("alice"), 0)

    async def test_clear_all_only_touches_own_feed(self):
        await self.service.emit("alice", "message")
        await self.service.emit("alice", "event_invite")
        await self.service.emit("bob", "message")
        self.assertEqual(await self.service.clear_all("alice"), 2)
        self.assertEqual(await self.service.fetch_notifications("alice"), [])
        self.assertEqual(len(await self.service.fetch_notifications("bob")), 1)
        self.assertEqual(await self.service.clear_all("alice"), 0)

    async def test_failed_clear_all_deletes_nothing(self):
        await self.service.emit("alice", "message")
        await self.service.emit("alice", "message")
        self.store.fail_on("delete", settings.MONGODB_COLLECTION_NOTIFICATIONS, call_number=2)
        with self.assertRaises(WriteError):
            await self.service.clear_all("alice")
        self.assertEqual(len(await self.service.fetch_notifications("alice")), 2)


if __name__ == "__main__":
    unittest.main()
