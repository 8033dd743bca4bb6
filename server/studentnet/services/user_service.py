# StudentNetwork/server/studentnet/services/user_service.py

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from studentnet.core.config import settings
from studentnet.core.exceptions import NotFoundError, ValidationError
from studentnet.db.store import DocumentStore, OrderBy, SERVER_TIMESTAMP
from studentnet.models.user import User

logger = logging.getLogger(__name__)

# Fields a user may change on their own profile
EDITABLE_PROFILE_FIELDS = {
    "display_name", "photo_url", "headline", "university", "major",
    "graduation_year", "location", "bio", "skills",
}


class UserService:
    """Profile lookups used by the social-graph services."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = settings.MONGODB_COLLECTION_USERS

    async def get_user(self, user_id: str) -> User:
        doc = await self.store.get(self.collection, user_id)
        if doc is None:
            raise NotFoundError("User", user_id)
        return User.model_validate(doc.to_dict())

    async def create_user(self, user: User) -> User:
        """Registers a profile document (used by seeding and tests; sign-up itself is external)."""
        await self.store.put(self.collection, user.id, user.model_dump(exclude={"id"}))
        logger.info(f"Created user profile {user.id}")
        return await self.get_user(user.id)

    async def update_profile(self, current_user: User, changes: Dict[str, Any]) -> User:
        unknown = set(changes) - EDITABLE_PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        # validate the merged profile before writing anything
        merged = current_user.model_copy(update=changes)
        try:
            User.model_validate(merged.model_dump())
        except ModelValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            logger.warning(f"User {current_user.id} sent an invalid profile update for {fields}")
            raise ValidationError(f"Invalid profile fields: {', '.join(fields)}") from e
        field_ops: Dict[str, Any] = dict(changes)
        field_ops["updated_at"] = SERVER_TIMESTAMP
        await self.store.update(self.collection, current_user.id, field_ops)
        logger.info(f"User {current_user.id} updated profile fields {sorted(changes)}")
        return await self.get_user(current_user.id)

    async def list_users(self, exclude_id: Optional[str] = None) -> List[User]:
        docs = await self.store.query(self.collection, order_by=[OrderBy("display_name")])
        return [User.model_validate(d.to_dict()) for d in docs if d.id != exclude_id]
