"""WebSocket endpoint feeding dashboard observers from the live fan-out."""

from __future__ import annotations

from fastapi import APIRouter, WebSocket

from botdesk.log import get_logger

router = APIRouter(tags=["live"])
logger = get_logger(__name__)


@router.websocket("/ws")
async def live_updates(websocket: WebSocket):
    fanout = websocket.app.state.botdesk.fanout
    await websocket.accept()
    await fanout.connect(websocket)
    try:
        # Observers only listen; inbound frames of any kind are discarded until the close.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                logger.debug("websocket_closed", code=message.get("code"))
                break
    finally:
        await fanout.disconnect(websocket)
