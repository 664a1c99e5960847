"""WebSocket endpoint that streams change notifications."""

import logging

from fastapi import APIRouter, WebSocket

from todo_api.broadcaster import HEARTBEAT

logger = logging.getLogger(__name__)

UPDATES_PATH = "/ws/updates"

router = APIRouter()


@router.websocket(UPDATES_PATH)
async def updates(websocket: WebSocket):
    """Register the socket for broadcasts until the client goes away.

    Inbound frames are heartbeats that keep proxies from idling the
    connection out; they are read and discarded without a reply.
    """
    broadcaster = websocket.app.state.broadcaster
    await websocket.accept()
    broadcaster.register(websocket)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") != HEARTBEAT:
                logger.debug("Ignoring unexpected realtime frame: %r", message)
    finally:
        broadcaster.unregister(websocket)
