# StudentNetwork/server/studentnet/services/notification_service.py

import logging
from typing import Any, Callable, Dict, List, Optional

from studentnet.core.config import settings
from studentnet.core.exceptions import NotFoundError
from studentnet.db.live import LiveQuery
from studentnet.db.store import (
    DESC,
    DeleteOp,
    DocumentStore,
    OrderBy,
    PutOp,
    Query,
    SERVER_TIMESTAMP,
    UpdateOp,
    where,
)
from studentnet.models.notification import Notification
from studentnet.models.user import User

logger = logging.getLogger(__name__)

# Where the UI shell should navigate when a notification is opened
NOTIFICATION_ROUTES: Dict[str, str] = {
    "connection_request": "/network",
    "connection_accepted": "/network",
    "message": "/messages",
    "job_recommendation": "/jobs",
    "event_invite": "/events",
}
POST_NOTIFICATION_TYPES = {"post_like", "post_comment"}

# Keys owned by the notification itself, never taken from a payload
RESERVED_FIELDS = {"id", "user_id", "type", "read", "timestamp", "read_time"}


def dispatch(notification: Notification) -> Optional[str]:
    """Route for a notification, or None when it has nowhere to go."""
    if notification.type in POST_NOTIFICATION_TYPES:
        return f"/post/{notification.post_id}" if notification.post_id else None
    return NOTIFICATION_ROUTES.get(notification.type)


def _to_notifications(docs) -> List[Notification]:
    return [Notification.model_validate(d.to_dict()) for d in docs]


class NotificationService:
    """
    Notification feed of one user: fan-out writes, unread tracking and the
    bulk read/clear operations. Bulk operations are single atomic batches.
    """

    def __init__(self, store: DocumentStore):
        self.store = store
        self.collection = settings.MONGODB_COLLECTION_NOTIFICATIONS

    # --- Writes ---
    def emit_op(self, user_id: str, type: str, payload: Optional[Dict[str, Any]] = None) -> PutOp:
        """The write `emit` performs, for callers that fold it into their own batch."""
        fields = {k: v for k, v in (payload or {}).items() if k not in RESERVED_FIELDS}
        fields.update({
            "user_id": user_id,
            "type": type,
            "read": False,
            "timestamp": SERVER_TIMESTAMP,
        })
        return PutOp(self.collection, self.store.new_id(), fields)

    async def emit(self, user_id: str, type: str, payload: Optional[Dict[str, Any]] = None) -> Notification:
        op = self.emit_op(user_id, type, payload)
        await self.store.put(op.collection, op.doc_id, op.fields)
        logger.info(f"Notification {op.doc_id} ({type}) emitted for user {user_id}")
        return await self.get(op.doc_id)

    async def get(self, notification_id: str) -> Notification:
        doc = await self.store.get(self.collection, notification_id)
        if doc is None:
            raise NotFoundError("Notification", notification_id)
        return Notification.model_validate(doc.to_dict())

    async def mark_read(self, notification_id: str, current_user: User) -> Notification:
        notification = await self.get(notification_id)
        if notification.user_id != current_user.id:
            # Someone else's notification is reported as missing
            logger.warning(f"User {current_user.id} tried to mark notification {notification_id} of {notification.user_id}")
            raise NotFoundError("Notification", notification_id)
        if not notification.read:
            await self.store.update(self.collection, notification_id, {"read": True, "read_time": SERVER_TIMESTAMP})
        return await self.get(notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        """Marks every unread notification of the user in one all-or-nothing batch."""
        unread = await self.store.run(self._unread_query(user_id))
        if not unread:
            return 0
        await self.store.batch([
            UpdateOp(self.collection, doc.id, {"read": True, "read_time": SERVER_TIMESTAMP})
            for doc in unread
        ])
        logger.info(f"Marked {len(unread)} notifications read for user {user_id}")
        return len(unread)

    async def clear_all(self, user_id: str) -> int:
        docs = await self.store.run(self._feed_query(user_id))
        if not docs:
            return 0
        await self.store.batch([DeleteOp(self.collection, doc.id) for doc in docs])
        logger.info(f"Cleared {len(docs)} notifications for user {user_id}")
        return len(docs)

    # --- Reads ---
    def _feed_query(self, user_id: str, type: Optional[str] = None) -> Query:
        predicates = [where("user_id", "==", user_id)]
        if type is not None:
            predicates.append(where("type", "==", type))
        return Query(self.collection, predicates, [OrderBy("timestamp", DESC)])

    def _unread_query(self, user_id: str) -> Query:
        return Query(
            self.collection,
            [where("user_id", "==", user_id), where("read", "==", False)],
            [OrderBy("timestamp", DESC)],
        )

    async def fetch_notifications(self, user_id: str, type: Optional[str] = None) -> List[Notification]:
        return _to_notifications(await self.store.run(self._feed_query(user_id, type)))

    async def list_notifications(
        self,
        user_id: str,
        type: Optional[str] = None,
        on_change: Optional[Callable[[List[Notification]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> LiveQuery[List[Notification]]:
        live = LiveQuery(self.store, self._feed_query(user_id, type), _to_notifications)
        await live.start(on_change, on_error)
        return live

    async def fetch_unread_count(self, user_id: str) -> int:
        return len(await self.store.run(self._unread_query(user_id)))

    async def unread_count(
        self,
        user_id: str,
        on_change: Optional[Callable[[int], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> LiveQuery[int]:
        live = LiveQuery(self.store, self._unread_query(user_id), len)
        await live.start(on_change, on_error)
        return live

    @staticmethod
    def dispatch(notification: Notification) -> Optional[str]:
        return dispatch(notification)
