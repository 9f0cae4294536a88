from fastapi import APIRouter, WebSocket
from logging_config import get_logger

logger = get_logger(__name__)

signaling_router = APIRouter(tags=["signaling"])


@signaling_router.websocket("/{path:path}")
async def signaling_endpoint(websocket: WebSocket, path: str):
    """WebSocket endpoint carrying JSON signaling frames for one peer.

    Upgrades are accepted on any path. Text and binary frames are both
    accepted; binary frames are decoded as UTF-8. A transport error is
    handled exactly like a normal close.
    """
    handler = websocket.app.state.lifecycle
    session = handler.session(websocket)
    error = None

    await websocket.accept()
    logger.debug(f"WebSocket accepted on /{path}")
    try:
        await session.open()
        while True:
            event = await websocket.receive()
            if event["type"] == "websocket.disconnect":
                logger.debug(f"WebSocket closed by peer {session.peer_id} (code {event.get('code')})")
                break
            frame = event.get("text")
            if frame is None:
                frame = event.get("bytes")
            if frame is None:
                continue
            await session.receive(frame)
    except Exception as e:
        error = e
    finally:
        await session.close(error)
