# StudentNetwork/server/studentnet/api/routes/network.py

import logging
from typing import List

from fastapi import APIRouter, Depends, status

from studentnet.api.deps import get_connection_service, raise_http
from studentnet.core.exceptions import StudentNetError
from studentnet.core.ids import pair_key
from studentnet.core.security import CurrentUser
from studentnet.models.connection import Connection, ConnectionRequest
from studentnet.schemas.network import ConnectionOut, ConnectionStatusOut
from studentnet.services.connection_service import ConnectionService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/network",
    tags=["Network"]
)


@router.post("/requests/{user_id}", status_code=status.HTTP_201_CREATED, response_model=ConnectionRequest)
async def send_connection_request(
    user_id: str,
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    logger.info(f"User {current_user.id} requesting connection with {user_id}")
    try:
        return await connections.request_connection(current_user, user_id)
    except StudentNetError as e:
        raise_http(e)


@router.get("/requests/incoming", response_model=List[ConnectionRequest])
async def incoming_requests(
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    try:
        return await connections.fetch_incoming_requests(current_user.id)
    except StudentNetError as e:
        raise_http(e)


@router.post("/requests/{user_id}/accept", response_model=Connection)
async def accept_connection_request(
    user_id: str,
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    logger.info(f"User {current_user.id} accepting request from {user_id}")
    try:
        return await connections.accept(user_id, current_user)
    except StudentNetError as e:
        raise_http(e)


@router.post("/requests/{user_id}/decline", response_model=ConnectionRequest)
async def decline_connection_request(
    user_id: str,
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    logger.info(f"User {current_user.id} declining request from {user_id}")
    try:
        return await connections.decline(user_id, current_user)
    except StudentNetError as e:
        raise_http(e)


@router.get("/status/{user_id}", response_model=ConnectionStatusOut)
async def connection_status(
    user_id: str,
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    try:
        return ConnectionStatusOut(
            user_id=user_id,
            status=await connections.get_status(current_user.id, user_id),
            connection_id=pair_key(current_user.id, user_id),
        )
    except StudentNetError as e:
        raise_http(e)


@router.get("/connections", response_model=List[ConnectionOut])
async def my_connections(
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    try:
        records = await connections.fetch_connections(current_user.id)
    except StudentNetError as e:
        raise_http(e)
    result = []
    for record in records:
        other = record.other_user(current_user.id)
        result.append(ConnectionOut(
            id=record.id,
            user_id=other,
            name=record.user_names.get(other) or "Unknown User",
            photo_url=record.user_photos.get(other),
        ))
    return result


@router.delete("/connections/{connection_id}", response_model=Connection)
async def remove_connection(
    connection_id: str,
    current_user: CurrentUser,
    connections: ConnectionService = Depends(get_connection_service),
):
    logger.info(f"User {current_user.id} removing connection {connection_id}")
    try:
        return await connections.remove(current_user, connection_id)
    except StudentNetError as e:
        raise_http(e)
