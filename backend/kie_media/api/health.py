from typing import Any, Dict

from fastapi import APIRouter, Depends, Request

from kie_media.api.deps import verify_token
from kie_media.utils.time import utc_now

router = APIRouter()


@router.get("/health")
async def health(request: Request, _: None = Depends(verify_token)) -> Dict[str, Any]:
    # generations need a key, catalog and validation do not
    generations_enabled = getattr(request.app.state, "kie_client", None) is not None
    return {"status": "ok", "time": utc_now(), "generations_enabled": generations_enabled}
