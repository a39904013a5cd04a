from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from kie_media.api.deps import verify_ws_token
from kie_media.services.generations import active_trackers
from kie_media.utils.time import utc_now
from kie_media.websocket.manager import manager

router = APIRouter()


@router.websocket("/events")
async def events(websocket: WebSocket) -> None:
    """Push generation progress/status and log events to the client."""
    if not await verify_ws_token(websocket):
        return
    await manager.connect(websocket)
    await websocket.send_json(
        {
            "type": "connected",
            "timestamp": utc_now(),
            "active_generations": sorted(active_trackers),
        }
    )
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
