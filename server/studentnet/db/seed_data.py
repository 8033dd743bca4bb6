# StudentNetwork/server/studentnet/db/seed_data.py

import logging
from typing import List, Dict, Any

from studentnet.db.store import DocumentStore
from studentnet.models.user import User
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)

# --- Demo profiles (stable ids keep seeding idempotent) ---
DEMO_USERS: List[Dict[str, Any]] = [
    {
        "id": "demo_alice",
        "display_name": "Alice Mensah",
        "email": "alice@example.edu",
        "headline": "CS undergrad, aspiring data engineer",
        "university": "State University",
        "major": "Computer Science",
        "graduation_year": 2026,
        "skills": ["python", "sql"],
    },
    {
        "id": "demo_bob",
        "display_name": "Bob Okafor",
        "email": "bob@example.edu",
        "headline": "Mechanical engineering student",
        "university": "State University",
        "major": "Mechanical Engineering",
        "graduation_year": 2027,
        "skills": ["cad", "matlab"],
    },
    {
        "id": "demo_chen",
        "display_name": "Chen Li",
        "email": "chen@example.edu",
        "headline": "Product design and UX research",
        "university": "City College",
        "major": "Design",
        "graduation_year": 2025,
        "skills": ["figma", "user research"],
    },
]


async def seed_all_data(store: DocumentStore) -> int:
    """Creates the demo profiles that are missing. Returns how many were created."""
    logger.info("Attempting to seed demo user profiles...")
    users = UserService(store)
    created = 0
    for data in DEMO_USERS:
        if await store.get(users.collection, data["id"]) is not None:
            continue
        try:
            await users.create_user(User.model_validate(data))
            created += 1
        except Exception as e:
            logger.error(f"Failed to seed demo user {data['id']}: {e}", exc_info=True)
            raise
    logger.info(f"Demo seeding complete: {created} profiles created, {len(DEMO_USERS) - created} already present.")
    return created
