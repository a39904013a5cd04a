import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from kie_media.api import events, generations, health, models, status
from kie_media.core.config import BACKEND_PORT, KIE_AI_API_KEY, ensure_dirs
from kie_media.db.connection import close_db, connect_db
from kie_media.services.catalog import get_catalog
from kie_media.services.generations import active_trackers
from kie_media.services.kie_client import create_kie_client
from kie_media.websocket.manager import manager


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    ensure_dirs()
    await connect_db()
    catalog = get_catalog()
    app.state.kie_client = create_kie_client() if KIE_AI_API_KEY else None
    if app.state.kie_client is None:
        await manager.emit_log("warn", "KIE_AI_API_KEY not set, generations disabled")
    await manager.emit_log("info", f"backend started ({len(catalog)} models)")
    try:
        yield
    finally:
        # local trackers stop here, remote tasks keep running
        trackers = list(active_trackers.values())
        for tracker in trackers:
            tracker.cancel()
        await asyncio.gather(*trackers, return_exceptions=True)
        if app.state.kie_client is not None:
            await app.state.kie_client.aclose()
        await close_db()


app = FastAPI(title="Kie Media Backend", version="0.1.0", lifespan=lifespan)
app.include_router(health.router)
app.include_router(status.router)
app.include_router(models.router)
app.include_router(generations.router)
app.include_router(events.router)


def run() -> None:
    import uvicorn

    uvicorn.run(
        "kie_media.main:app",
        host="127.0.0.1",
        port=BACKEND_PORT,
        log_level="info",
    )


if __name__ == "__main__":
    run()
