from typing import Any, Dict, Optional

from fastapi import WebSocket

from kie_media.core.logging import logger
from kie_media.utils.time import utc_now

_LOG_LEVELS = {"error": logger.error, "warn": logger.warning, "debug": logger.debug}


class WebSocketManager:
    def __init__(self) -> None:
        self.connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)

    async def broadcast(self, payload: Dict[str, Any]) -> None:
        dead: list[WebSocket] = []
        for conn in list(self.connections):
            try:
                await conn.send_json(payload)
            except RuntimeError:
                dead.append(conn)
        for conn in dead:
            self.connections.discard(conn)

    async def publish(self, event_type: str, **fields: Any) -> None:
        await self.broadcast({"type": event_type, "timestamp": utc_now(), **fields})

    async def emit_log(
        self, level: str, message: str, meta: Optional[Dict[str, Any]] = None
    ) -> None:
        log_message = message.strip()
        if not log_message:
            return
        _LOG_LEVELS.get(level, logger.info)(log_message)
        await self.publish("log", level=level, message=log_message, meta=meta)


manager = WebSocketManager()
