# StudentNetwork/server/studentnet/api/deps.py

import logging
from typing import Optional, NoReturn

from fastapi import Depends, HTTPException, status

from studentnet.core.config import settings
from studentnet.core.exceptions import (
    NotFoundError,
    NotParticipantError,
    StoreError,
    StudentNetError,
    ValidationError,
)
from studentnet.db.memory import MemoryDocumentStore
from studentnet.db.mongodb import MongoDocumentStore, mongodb
from studentnet.db.store import DocumentStore
from studentnet.services.connection_service import ConnectionService
from studentnet.services.conversation_service import ConversationService
from studentnet.services.message_service import MessageService
from studentnet.services.notification_service import NotificationService
from studentnet.services.unread_service import UnreadService
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)

_memory_store: Optional[MemoryDocumentStore] = None


# --- Store Dependency ---
def get_store() -> DocumentStore:
    """Returns the configured document store (503 when MongoDB is not connected)."""
    global _memory_store
    if settings.STORE_BACKEND == "memory":
        if _memory_store is None:
            _memory_store = MemoryDocumentStore()
            logger.info("Using in-process memory document store.")
        return _memory_store
    try:
        return MongoDocumentStore(mongodb.get_db(), mongodb.client)
    except RuntimeError as e:
        logger.error(f"Database connection error in get_store dependency: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection not available.",
        )


# --- Service Dependencies ---
def get_user_service(store: DocumentStore = Depends(get_store)) -> UserService:
    return UserService(store)


def get_notification_service(store: DocumentStore = Depends(get_store)) -> NotificationService:
    return NotificationService(store)


def get_connection_service(store: DocumentStore = Depends(get_store)) -> ConnectionService:
    return ConnectionService(store, UserService(store), NotificationService(store))


def get_conversation_service(store: DocumentStore = Depends(get_store)) -> ConversationService:
    return ConversationService(store, UserService(store))


def get_message_service(store: DocumentStore = Depends(get_store)) -> MessageService:
    return MessageService(store, ConversationService(store, UserService(store)), NotificationService(store))


def get_unread_service(store: DocumentStore = Depends(get_store)) -> UnreadService:
    return UnreadService(store)


# --- Error Mapping ---
def raise_http(e: StudentNetError) -> NoReturn:
    """Translates a service error into the matching HTTPException."""
    if isinstance(e, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, NotParticipantError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    if isinstance(e, StoreError):
        logger.error(f"Store failure: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Store temporarily unavailable, please retry.")
    logger.error(f"Unhandled service error: {e}", exc_info=True)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)
