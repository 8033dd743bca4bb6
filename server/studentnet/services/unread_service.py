# StudentNetwork/server/studentnet/services/unread_service.py

import logging
from typing import List, Optional

from pydantic import BaseModel

from studentnet.db.live import LiveQuery, LiveView
from studentnet.db.store import DocumentStore
from studentnet.models.conversation import Conversation
from studentnet.services.conversation_service import ConversationService, unread_for
from studentnet.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class BadgeCounts(BaseModel):
    messages: int = 0
    notifications: int = 0


def total_unread(threads: List[Conversation], user_id: str) -> int:
    return sum(unread_for(thread, user_id) for thread in threads)


class LiveBadgeCounts(LiveView[BadgeCounts]):
    """
    Combines the user's thread list and unread-notification count. The first
    BadgeCounts is emitted once both sides have delivered, then a new one
    whenever either number changes.
    """

    def __init__(self, user_id: str, conversations: ConversationService, notifications: NotificationService):
        super().__init__()
        self.user_id = user_id
        self.conversations = conversations
        self.notifications = notifications
        self._messages: Optional[int] = None
        self._notifications: Optional[int] = None
        self._published: Optional[BadgeCounts] = None
        self._threads: Optional[LiveQuery] = None
        self._unread: Optional[LiveQuery] = None

    async def _subscribe(self) -> None:
        self._messages = None
        self._notifications = None
        self._published = None
        # a dead constituent subscription ends this view too
        self._threads = await self.conversations.list_threads(self.user_id, self._on_threads, self._fail)
        try:
            self._unread = await self.notifications.unread_count(self.user_id, self._on_notifications, self._fail)
        except Exception:
            self._threads.close()
            raise

    def _on_threads(self, threads: List[Conversation]) -> None:
        self._messages = total_unread(threads, self.user_id)
        self._publish()

    def _on_notifications(self, count: int) -> None:
        self._notifications = count
        self._publish()

    def _publish(self) -> None:
        if self._messages is None or self._notifications is None:
            return
        counts = BadgeCounts(messages=self._messages, notifications=self._notifications)
        if counts == self._published:
            return
        self._published = counts
        self._emit(counts)

    def _unsubscribe(self) -> None:
        for live in (self._threads, self._unread):
            if live is not None:
                live.close()
        self._threads = None
        self._unread = None


class UnreadService:
    """Badge counters for the navigation shell. Read-only."""

    def __init__(
        self,
        store: DocumentStore,
        conversations: Optional[ConversationService] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.conversations = conversations if conversations is not None else ConversationService(store)
        self.notifications = notifications if notifications is not None else NotificationService(store)

    async def badge_counts(self, user_id: str, on_change=None, on_error=None) -> LiveBadgeCounts:
        live = LiveBadgeCounts(user_id, self.conversations, self.notifications)
        await live.start(on_change, on_error)
        return live

    async def fetch_badge_counts(self, user_id: str) -> BadgeCounts:
        threads = await self.conversations.fetch_threads(user_id)
        return BadgeCounts(
            messages=total_unread(threads, user_id),
            notifications=await self.notifications.fetch_unread_count(user_id),
        )
