# StudentNetwork/server/studentnet/api/routes/chats.py

import logging
from typing import List

from fastapi import APIRouter, Depends, WebSocket, status

from studentnet.api.deps import get_conversation_service, get_message_service, raise_http
from studentnet.api.streaming import pump
from studentnet.core.exceptions import NotParticipantError, StudentNetError
from studentnet.core.security import CurrentUser, WebSocketUser
from studentnet.models.conversation import Conversation, Message
from studentnet.models.user import User
from studentnet.schemas.chat import MarkReadOut, MessageCreate, ThreadOut
from studentnet.services.conversation_service import ConversationService
from studentnet.services.message_service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/chats",
    tags=["Chats"]
)


def to_thread_out(thread: Conversation, current_user: User) -> ThreadOut:
    return ThreadOut(
        id=thread.id,
        other=ConversationService.other_participant(thread, current_user.id),
        last_message=thread.last_message,
        last_message_time=thread.last_message_time,
        last_message_sender=thread.last_message_sender,
        unread=ConversationService.unread_for(thread, current_user.id),
    )


async def _participant_thread(conversations: ConversationService, thread_id: str, user: User) -> Conversation:
    thread = await conversations.get_thread(thread_id)
    if user.id not in thread.participants:
        raise NotParticipantError(user.id, thread_id)
    return thread


@router.get("", response_model=List[ThreadOut])
async def list_threads(
    current_user: CurrentUser,
    conversations: ConversationService = Depends(get_conversation_service),
):
    try:
        threads = await conversations.fetch_threads(current_user.id)
        return [to_thread_out(t, current_user) for t in threads]
    except StudentNetError as e:
        raise_http(e)


@router.post("/with/{user_id}", response_model=ThreadOut)
async def open_thread(
    user_id: str,
    current_user: CurrentUser,
    conversations: ConversationService = Depends(get_conversation_service),
):
    try:
        thread = await conversations.ensure_thread(current_user, user_id)
        return to_thread_out(thread, current_user)
    except StudentNetError as e:
        raise_http(e)


@router.get("/{thread_id}/messages", response_model=List[Message])
async def read_history(
    thread_id: str,
    current_user: CurrentUser,
    conversations: ConversationService = Depends(get_conversation_service),
    messages: MessageService = Depends(get_message_service),
):
    try:
        await _participant_thread(conversations, thread_id, current_user)
        return await messages.fetch_history(thread_id)
    except StudentNetError as e:
        raise_http(e)


@router.post("/{thread_id}/messages", status_code=status.HTTP_201_CREATED, response_model=Message)
async def send_message(
    thread_id: str,
    body: MessageCreate,
    current_user: CurrentUser,
    messages: MessageService = Depends(get_message_service),
):
    try:
        return await messages.send(thread_id, current_user, body.text)
    except StudentNetError as e:
        raise_http(e)


@router.post("/{thread_id}/read", response_model=MarkReadOut)
async def mark_thread_read(
    thread_id: str,
    current_user: CurrentUser,
    messages: MessageService = Depends(get_message_service),
):
    try:
        result = await messages.mark_read(thread_id, current_user.id)
    except StudentNetError as e:
        raise_http(e)
    return MarkReadOut(
        applied=result.applied,
        failed=result.failed,
        failed_ids=[f.document_id for f in result.failures],
    )


@router.websocket("/{thread_id}/ws")
async def stream_history(
    websocket: WebSocket,
    thread_id: str,
    current_user: WebSocketUser,
    conversations: ConversationService = Depends(get_conversation_service),
    messages: MessageService = Depends(get_message_service),
):
    """Pushes the full ordered history every time it changes."""
    try:
        await _participant_thread(conversations, thread_id, current_user)
    except StudentNetError as e:
        logger.warning(f"Rejecting history stream for {current_user.id} on {thread_id}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=str(e))
        return
    await websocket.accept()
    live = await messages.history(thread_id)
    await pump(websocket, live, lambda snapshot: [m.model_dump(mode="json") for m in snapshot])
