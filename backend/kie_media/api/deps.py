from fastapi import HTTPException, Request, WebSocket

from kie_media.core.config import BACKEND_TOKEN
from kie_media.services.kie_client import KieClient


async def verify_token(request: Request) -> None:
    if BACKEND_TOKEN and request.headers.get("X-Backend-Token") != BACKEND_TOKEN:
        raise HTTPException(status_code=401, detail="unauthorized")


async def verify_ws_token(websocket: WebSocket) -> bool:
    if BACKEND_TOKEN and websocket.headers.get("x-backend-token") != BACKEND_TOKEN:
        await websocket.close(code=1008)
        return False
    return True


def get_kie_client(request: Request) -> KieClient:
    client = getattr(request.app.state, "kie_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="KIE_AI_API_KEY is not configured")
    return client
