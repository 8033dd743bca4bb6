# StudentNetwork/server/studentnet/api/streaming.py

import asyncio
import logging
from typing import Any, Callable

from fastapi import WebSocket, WebSocketDisconnect, status

from studentnet.core.exceptions import StoreError
from studentnet.db.live import LiveView

logger = logging.getLogger(__name__)


async def pump(websocket: WebSocket, live: LiveView, encode: Callable[[Any], Any]) -> None:
    """
    Forwards every snapshot of `live` to the socket as JSON until either side
    goes away. The view is always closed on exit.
    """

    async def watch_disconnect() -> None:
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            logger.info("WebSocket client disconnected.")
        finally:
            live.close()

    watcher = asyncio.create_task(watch_disconnect())
    try:
        async for snapshot in live:
            await websocket.send_json(encode(snapshot))
    except WebSocketDisconnect:
        logger.info("WebSocket closed while sending a snapshot.")
    except StoreError as e:
        logger.error(f"Live stream ended by store failure: {e}")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR, reason="Store subscription lost")
    finally:
        live.close()
        watcher.cancel()
