# StudentNetwork/server/studentnet/services/conversation_service.py

import logging
from typing import Callable, List, Optional

from studentnet.core.config import settings
from studentnet.core.exceptions import MalformedThreadError, NotFoundError
from studentnet.core.ids import pair_key
from studentnet.db.live import LiveQuery
from studentnet.db.store import DESC, DocumentStore, OrderBy, Query, SERVER_TIMESTAMP, where
from studentnet.models.conversation import Conversation
from studentnet.models.user import ParticipantInfo, User
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)


def _to_threads(docs) -> List[Conversation]:
    return [Conversation.model_validate(d.to_dict()) for d in docs]


def thread_id(user_a: str, user_b: str) -> str:
    """Same id whichever participant asks."""
    return pair_key(user_a, user_b)


def other_participant(thread: Conversation, self_id: str) -> ParticipantInfo:
    participants = thread.participants
    if len(participants) != 2 or len(set(participants)) != 2 or self_id not in participants:
        raise MalformedThreadError(
            f"Thread {thread.id} must have exactly two participants including '{self_id}' (has {participants})."
        )
    other = participants[0] if participants[1] == self_id else participants[1]
    return ParticipantInfo(
        id=other,
        name=thread.participant_names.get(other) or "Unknown User",
        photo_url=thread.participant_photos.get(other),
    )


def unread_for(thread: Conversation, user_id: str) -> int:
    return int(thread.unread_counts.get(user_id, 0))


class ConversationService:
    """Directory of one-to-one chat threads."""

    def __init__(self, store: DocumentStore, users: Optional[UserService] = None):
        self.store = store
        self.users = users if users is not None else UserService(store)
        self.collection = settings.MONGODB_COLLECTION_CHATS

    thread_id = staticmethod(thread_id)
    other_participant = staticmethod(other_participant)
    unread_for = staticmethod(unread_for)

    async def get_thread(self, thread_id: str) -> Conversation:
        doc = await self.store.get(self.collection, thread_id)
        if doc is None:
            raise NotFoundError("Conversation", thread_id)
        return Conversation.model_validate(doc.to_dict())

    async def ensure_thread(self, current_user: User, other_user_id: str) -> Conversation:
        """
        Check-then-create. Two users opening the same chat at once both write
        the same id with the same participant data, so the race is harmless.
        """
        tid = thread_id(current_user.id, other_user_id)
        existing = await self.store.get(self.collection, tid)
        if existing is not None:
            return Conversation.model_validate(existing.to_dict())

        other = await self.users.get_user(other_user_id)
        members = sorted([current_user, other], key=lambda u: u.id)
        await self.store.put(self.collection, tid, {
            "participants": [u.id for u in members],
            "participant_names": {u.id: u.display_name for u in members},
            "participant_photos": {u.id: u.photo_url for u in members},
            "last_message": "",
            "last_message_time": SERVER_TIMESTAMP,
            "last_message_sender": None,
            "unread_counts": {u.id: 0 for u in members},
            "created_at": SERVER_TIMESTAMP,
        })
        logger.info(f"Created conversation {tid}")
        return await self.get_thread(tid)

    def _threads_query(self, user_id: str) -> Query:
        return Query(
            self.collection,
            [where("participants", "array-contains", user_id)],
            [OrderBy("last_message_time", DESC)],
        )

    async def fetch_threads(self, user_id: str) -> List[Conversation]:
        return _to_threads(await self.store.run(self._threads_query(user_id)))

    async def list_threads(
        self, user_id: str, on_change: Optional[Callable[[List[Conversation]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> LiveQuery[List[Conversation]]:
        """Live, most recent first. Close the returned view when done."""
        live = LiveQuery(self.store, self._threads_query(user_id), _to_threads)
        await live.start(on_change, on_error)
        return live
