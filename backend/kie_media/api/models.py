from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from kie_media.api.deps import verify_token
from kie_media.core.errors import UnknownModelError, ValidationError
from kie_media.schemas.catalog import GenerationType, ModelsResponse, ModelSummary
from kie_media.schemas.generations import ValidateResponse
from kie_media.services.catalog import get_catalog
from kie_media.services.schema_compiler import get_schema_cache

router = APIRouter(prefix="/models")


def validation_detail(exc: ValidationError) -> Dict[str, Any]:
    return {"model": exc.model_id, "issues": exc.issues}


@router.get("", response_model=ModelsResponse)
async def list_models_api(
    category: Optional[GenerationType] = None, _: None = Depends(verify_token)
) -> ModelsResponse:
    models = get_catalog().list(category.value if category else None)
    return ModelsResponse(
        models=[
            ModelSummary(id=model.id, name=model.name, provider=model.provider, type=model.type)
            for model in models
        ]
    )


@router.post("/{model_id:path}/validate", response_model=ValidateResponse)
async def validate_input_api(
    model_id: str,
    payload: Dict[str, Any] = Body(default_factory=dict),
    _: None = Depends(verify_token),
) -> ValidateResponse:
    try:
        normalized = get_schema_cache().validate(model_id, payload)
    except UnknownModelError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=validation_detail(exc)) from exc
    return ValidateResponse(model=model_id, input=normalized)


@router.get("/{model_id:path}")
async def get_model_api(model_id: str, _: None = Depends(verify_token)) -> Dict[str, Any]:
    try:
        model = get_catalog().get(model_id)
    except UnknownModelError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
