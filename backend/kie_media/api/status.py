from typing import Any, Dict

from fastapi import APIRouter, Depends

from kie_media.api.deps import verify_token
from kie_media.services.generations import status_snapshot

router = APIRouter()


@router.get("/status")
async def status(_: None = Depends(verify_token)) -> Dict[str, Any]:
    return status_snapshot()
