# StudentNetwork/server/studentnet/api/routes/notifications.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, status

from studentnet.api.deps import get_notification_service, get_unread_service, raise_http
from studentnet.api.streaming import pump
from studentnet.core.exceptions import StudentNetError
from studentnet.core.security import CurrentUser, WebSocketUser
from studentnet.models.notification import Notification
from studentnet.schemas.notification import CountOut, NotificationCreate, NotificationOut
from studentnet.services.notification_service import NotificationService, dispatch
from studentnet.services.unread_service import BadgeCounts, UnreadService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["Notifications"]
)


@router.get("", response_model=List[NotificationOut])
async def list_notifications(
    current_user: CurrentUser,
    type: Optional[str] = Query(None, description="Only notifications of this type"),
    notifications: NotificationService = Depends(get_notification_service),
):
    try:
        items = await notifications.fetch_notifications(current_user.id, type)
    except StudentNetError as e:
        raise_http(e)
    return [NotificationOut(notification=n, route=dispatch(n)) for n in items]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=Notification)
async def emit_notification(
    body: NotificationCreate,
    current_user: CurrentUser,
    notifications: NotificationService = Depends(get_notification_service),
):
    """Fan-out entry point for other features. The caller is recorded as sender."""
    payload = {**body.payload, "sender_id": current_user.id, "sender_name": current_user.display_name,
               "sender_photo": current_user.photo_url}
    try:
        return await notifications.emit(body.user_id, body.type, payload)
    except StudentNetError as e:
        raise_http(e)


@router.get("/unread-count", response_model=CountOut)
async def unread_count(
    current_user: CurrentUser,
    notifications: NotificationService = Depends(get_notification_service),
):
    try:
        return CountOut(count=await notifications.fetch_unread_count(current_user.id))
    except StudentNetError as e:
        raise_http(e)


@router.get("/badges", response_model=BadgeCounts)
async def badge_counts(
    current_user: CurrentUser,
    unread: UnreadService = Depends(get_unread_service),
):
    try:
        return await unread.fetch_badge_counts(current_user.id)
    except StudentNetError as e:
        raise_http(e)


@router.post("/read-all", response_model=CountOut)
async def mark_all_read(
    current_user: CurrentUser,
    notifications: NotificationService = Depends(get_notification_service),
):
    try:
        return CountOut(count=await notifications.mark_all_read(current_user.id))
    except StudentNetError as e:
        raise_http(e)


@router.post("/{notification_id}/read", response_model=NotificationOut)
async def mark_read(
    notification_id: str,
    current_user: CurrentUser,
    notifications: NotificationService = Depends(get_notification_service),
):
    """Marks one notification read and tells the client where it leads."""
    try:
        notification = await notifications.mark_read(notification_id, current_user)
    except StudentNetError as e:
        raise_http(e)
    return NotificationOut(notification=notification, route=dispatch(notification))


@router.delete("", response_model=CountOut)
async def clear_all(
    current_user: CurrentUser,
    notifications: NotificationService = Depends(get_notification_service),
):
    try:
        return CountOut(count=await notifications.clear_all(current_user.id))
    except StudentNetError as e:
        raise_http(e)


@router.websocket("/badges/ws")
async def stream_badges(
    websocket: WebSocket,
    current_user: WebSocketUser,
    unread: UnreadService = Depends(get_unread_service),
):
    await websocket.accept()
    live = await unread.badge_counts(current_user.id)
    await pump(websocket, live, lambda counts: counts.model_dump())
