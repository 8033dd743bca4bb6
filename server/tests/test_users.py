import unittest

from helpers import make_user, seed_users
from studentnet.core.config import settings
from studentnet.core.exceptions import NotFoundError, ValidationError
from studentnet.db.memory import MemoryDocumentStore
from studentnet.db.seed_data import DEMO_USERS, seed_all_data
from studentnet.services.user_service import UserService


class UserServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.store = MemoryDocumentStore()
        self.users = UserService(self.store)

    async def test_update_profile(self):
        alice, = await seed_users(self.store, "alice")
        updated = await self.users.update_profile(alice, {"headline": "Data intern", "graduation_year": 2026})
        self.assertEqual(updated.headline, "Data intern")
        self.assertEqual(updated.graduation_year, 2026)
        self.assertGreater(updated.updated_at, alice.updated_at)

    async def test_update_profile_rejects_protected_fields(self):
        alice, = await seed_users(self.store, "alice")
        with self.assertRaises(ValidationError):
            await self.users.update_profile(alice, {"id": "mallory"})
        with self.assertRaises(ValidationError):
            await self.users.update_profile(alice, {"email": "x@y.co"})
        self.assertEqual((await self.users.get_user("alice")).display_name, "Alice")

    async def test_update_profile_rejects_null_required_fields(self):
        alice, = await seed_users(self.store, "alice")
        with self.assertRaises(ValidationError):
            await self.users.update_profile(alice, {"display_name": None})
        with self.assertRaises(ValidationError):
            await self.users.update_profile(alice, {"graduation_year": 1200})
        self.assertEqual((await self.users.get_user("alice")).display_name, "Alice")
        self.assertEqual(self.store.op_counts[("update", settings.MONGODB_COLLECTION_USERS)], 0)

    async def test_list_users_excludes_caller(self):
        await self.users.create_user(make_user("z1", "Zoe"))
        await self.users.create_user(make_user("a1", "Ana"))
        await self.users.create_user(make_user("m1", "Mo"))
        people = await self.users.list_users(exclude_id="m1")
        self.assertEqual([p.display_name for p in people], ["Ana", "Zoe"])
        with self.assertRaises(NotFoundError):
            await self.users.get_user("nobody")

    async def test_seeding_is_idempotent(self):
        self.assertEqual(await seed_all_data(self.store), len(DEMO_USERS))
        self.assertEqual(await seed_all_data(self.store), 0)
        self.assertEqual(len(await self.users.list_users()), len(DEMO_USERS))


if __name__ == "__main__":
    unittest.main()
