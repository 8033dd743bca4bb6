from typing import List

from studentnet.db.memory import MemoryDocumentStore
from studentnet.models.user import User
from studentnet.services.user_service import UserService


def make_user(user_id: str, name: str = None, **extra) -> User:
    return User(id=user_id, display_name=name or user_id.title(), **extra)


async def seed_users(store: MemoryDocumentStore, *user_ids: str) -> List[User]:
    service = UserService(store)
    return [await service.create_user(make_user(uid, photo_url=f"https://img.example/{uid}.png")) for uid in user_ids]
