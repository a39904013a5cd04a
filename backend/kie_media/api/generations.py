from fastapi import APIRouter, Depends, HTTPException

from kie_media.api.deps import get_kie_client, verify_token
from kie_media.api.models import validation_detail
from kie_media.core.errors import SubmissionError, UnknownModelError, ValidationError
from kie_media.db import generations_repo
from kie_media.schemas.generations import (
    GenerationCreate,
    GenerationRecord,
    GenerationResponse,
    GenerationsResponse,
)
from kie_media.services.generations import start_generation
from kie_media.services.kie_client import KieClient

router = APIRouter(prefix="/generations")


@router.post("", response_model=GenerationResponse)
async def create_generation_api(
    request: GenerationCreate,
    client: KieClient = Depends(get_kie_client),
    _: None = Depends(verify_token),
) -> GenerationResponse:
    try:
        started = await start_generation(
            client, request.model, request.input, request.callback_url
        )
    except UnknownModelError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=validation_detail(exc)) from exc
    except SubmissionError as exc:
        raise HTTPException(
            status_code=502, detail={"code": exc.code, "message": exc.message}
        ) from exc
    return GenerationResponse(**started)


@router.get("", response_model=GenerationsResponse)
async def list_generations(_: None = Depends(verify_token)) -> GenerationsResponse:
    return GenerationsResponse(generations=await generations_repo.fetch_generations())


@router.get("/{generation_id}", response_model=GenerationRecord)
async def get_generation(
    generation_id: str, _: None = Depends(verify_token)
) -> GenerationRecord:
    generation = await generations_repo.fetch_generation(generation_id)
    if not generation:
        raise HTTPException(status_code=404, detail="generation not found")
    return GenerationRecord(
        **generation, events=await generations_repo.fetch_events(generation_id)
    )
