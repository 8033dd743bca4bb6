# StudentNetwork/server/studentnet/services/message_service.py

import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from studentnet.core.config import settings
from studentnet.core.exceptions import (
    EmptyMessageError,
    NotParticipantError,
    PartialBatchFailure,
    StoreError,
)
from studentnet.db.live import LiveQuery
from studentnet.db.store import (
    ASC,
    BatchOp,
    DocumentStore,
    Increment,
    OrderBy,
    PutOp,
    Query,
    SERVER_TIMESTAMP,
    UpdateOp,
    where,
)
from studentnet.models.conversation import Conversation, Message
from studentnet.models.user import User
from studentnet.services.conversation_service import ConversationService
from studentnet.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


class MarkReadResult(BaseModel):
    """Outcome of a best-effort mark_read pass."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    applied: int = 0
    failures: List[PartialBatchFailure] = Field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)


def _to_messages(docs) -> List[Message]:
    return [Message.model_validate(d.to_dict()) for d in docs]


def _clean_text(text: Optional[str]) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise EmptyMessageError()
    return cleaned


class MessageService:
    """
    Append-only message log per thread, with read receipts and the per-user
    unread counters kept on the thread document.
    """

    def __init__(
        self,
        store: DocumentStore,
        conversations: Optional[ConversationService] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.store = store
        self.conversations = conversations if conversations is not None else ConversationService(store)
        self.notifications = notifications
        self.collection = settings.MONGODB_COLLECTION_MESSAGES
        self.chat_collection = settings.MONGODB_COLLECTION_CHATS

    async def send(self, thread_id: str, sender: User, text: str) -> Message:
        """
        Appends a message and updates the thread summary in one atomic batch.
        Whitespace-only text is rejected before the store is touched.
        """
        cleaned = _clean_text(text)
        thread = await self.conversations.get_thread(thread_id)
        if sender.id not in thread.participants:
            raise NotParticipantError(sender.id, thread_id)
        recipients = [uid for uid in thread.participants if uid != sender.id]

        message_id = self.store.new_id()
        thread_ops = {
            "last_message": cleaned,
            "last_message_time": SERVER_TIMESTAMP,
            "last_message_sender": sender.id,
        }
        for uid in recipients:
            thread_ops[f"unread_counts.{uid}"] = Increment(1)
        ops: List[BatchOp] = [
            PutOp(self.collection, message_id, {
                "thread_id": thread_id,
                "sender_id": sender.id,
                "sender_name": sender.display_name,
                "text": cleaned,
                "timestamp": SERVER_TIMESTAMP,
                "read": False,
            }),
            UpdateOp(self.chat_collection, thread_id, thread_ops),
        ]
        if self.notifications is not None and settings.NOTIFY_ON_MESSAGE:
            for uid in recipients:
                ops.append(self.notifications.emit_op(uid, "message", {
                    "sender_id": sender.id,
                    "sender_name": sender.display_name,
                    "sender_photo": sender.photo_url,
                    "thread_id": thread_id,
                    "message": cleaned[:PREVIEW_LENGTH],
                }))
        await self.store.batch(ops)
        logger.debug(f"Message {message_id} appended to thread {thread_id} by {sender.id}")

        doc = await self.store.get(self.collection, message_id)
        return Message.model_validate(doc.to_dict())

    async def send_direct(self, sender: User, recipient_id: str, text: str) -> Message:
        """Opens (or reuses) the thread with `recipient_id` and sends into it."""
        _clean_text(text)
        thread = await self.conversations.ensure_thread(sender, recipient_id)
        return await self.send(thread.id, sender, text)

    # --- History ---
    def _history_query(self, thread_id: str) -> Query:
        return Query(self.collection, [where("thread_id", "==", thread_id)], [OrderBy("timestamp", ASC)])

    async def fetch_history(self, thread_id: str) -> List[Message]:
        await self.conversations.get_thread(thread_id)
        return _to_messages(await self.store.run(self._history_query(thread_id)))

    async def history(
        self, thread_id: str, on_change: Optional[Callable[[List[Message]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> LiveQuery[List[Message]]:
        """Live, oldest first. Close the returned view when done."""
        await self.conversations.get_thread(thread_id)
        live = LiveQuery(self.store, self._history_query(thread_id), _to_messages)
        await live.start(on_change, on_error)
        return live

    # --- Read receipts ---
    async def mark_read(self, thread_id: str, reader_id: str) -> MarkReadResult:
        """
        Marks every unread message from the other participant as read.

        Each message is updated on its own; a failed update is logged and
        left for the next call, which is safe because the operation is
        idempotent per message. The reader's unread counter is then set to
        what is still unread.
        """
        thread: Conversation = await self.conversations.get_thread(thread_id)
        if reader_id not in thread.participants:
            raise NotParticipantError(reader_id, thread_id)

        result = MarkReadResult()
        for doc in await self._unread_from_others(thread_id, reader_id):
            try:
                await self.store.update(self.collection, doc.id, {"read": True, "read_time": SERVER_TIMESTAMP})
                result.applied += 1
            except StoreError as e:
                failure = PartialBatchFailure(doc.id, e)
                logger.warning(f"mark_read on thread {thread_id}: {failure}")
                result.failures.append(failure)

        # recount rather than subtract: messages may have arrived meanwhile.
        # An Increment from a send landing between this recount and the write
        # below is overwritten; the reader's next mark_read restores the count.
        remaining = len(await self._unread_from_others(thread_id, reader_id))
        if thread.unread_counts.get(reader_id, 0) != remaining or result.applied:
            await self.store.update(self.chat_collection, thread_id, {f"unread_counts.{reader_id}": remaining})
        if result.applied:
            logger.info(f"Marked {result.applied} messages read in thread {thread_id} for {reader_id}")
        return result

    async def _unread_from_others(self, thread_id: str, reader_id: str):
        docs = await self.store.query(
            self.collection,
            [where("thread_id", "==", thread_id), where("read", "==", False)],
            [OrderBy("timestamp", ASC)],
        )
        return [d for d in docs if d.data.get("sender_id") != reader_id]
