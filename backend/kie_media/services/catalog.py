"""Model catalog loaded from the YAML files in the catalog directory.

Each category file (video.yaml, image.yaml, audio.yaml) maps a model id to
its definition::

    kling-2.6/text-to-video:
      name: Kling 2.6 Text to Video
      provider: kling
      type: video
      pricing: {5s: 0.28, 10s: 0.55}
      input:
        prompt: {type: string, max: 2500, required: true}
        duration: {type: enum, values: ["5", "10"], default: "5"}

The catalog is read once and never mutated afterwards.
"""

import os
import threading
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from kie_media.core.config import KIE_CATALOG_DIR
from kie_media.core.errors import CatalogError, UnknownModelError
from kie_media.core.logging import logger
from kie_media.schemas.catalog import GenerationType, ModelDefinition

CATEGORIES = tuple(item.value for item in GenerationType)

_catalog: Optional["ModelCatalog"] = None
_catalog_lock = threading.Lock()


class ModelCatalog:
    def __init__(self, models: Mapping[str, ModelDefinition]) -> None:
        self._models = MappingProxyType(dict(models))

    def __contains__(self, model_id: object) -> bool:
        return model_id in self._models

    def __len__(self) -> int:
        return len(self._models)

    @property
    def models(self) -> Mapping[str, ModelDefinition]:
        return self._models

    def get(self, model_id: str) -> ModelDefinition:
        try:
            return self._models[model_id]
        except KeyError:
            raise UnknownModelError(model_id) from None

    def list(self, category: Optional[str] = None) -> List[ModelDefinition]:
        if category is None:
            return list(self._models.values())
        if category not in CATEGORIES:
            raise ValueError(f"Unknown category: {category}. Available: {', '.join(CATEGORIES)}")
        return [model for model in self._models.values() if model.type.value == category]


def _parse_category(path: str, category: str, raw: Any) -> Dict[str, ModelDefinition]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise CatalogError(f"{path}: expected a mapping of model id to definition")
    models: Dict[str, ModelDefinition] = {}
    for model_id, data in raw.items():
        if not isinstance(data, dict):
            raise CatalogError(f"{path}: model '{model_id}' must be a mapping")
        payload = {"type": category, **data, "id": str(model_id)}
        try:
            models[str(model_id)] = ModelDefinition.model_validate(payload)
        except PydanticValidationError as exc:
            raise CatalogError(f"{path}: model '{model_id}' is invalid: {exc}") from exc
    return models


def load_catalog(catalog_dir: Optional[str] = None) -> ModelCatalog:
    root = catalog_dir or KIE_CATALOG_DIR
    models: Dict[str, ModelDefinition] = {}
    for category in CATEGORIES:
        path = os.path.join(root, f"{category}.yaml")
        if not os.path.exists(path):
            logger.info("catalog: skipping %s (no yaml)", category)
            continue
        with open(path, "r", encoding="utf-8") as handle:
            try:
                raw = yaml.safe_load(handle)
            except yaml.YAMLError as exc:
                raise CatalogError(f"{path}: {exc}") from exc
        parsed = _parse_category(path, category, raw)
        duplicates = sorted(set(parsed) & set(models))
        if duplicates:
            raise CatalogError(f"{path}: duplicate model ids: {', '.join(duplicates)}")
        models.update(parsed)
        logger.info("catalog: %s loaded %d models", category, len(parsed))
    return ModelCatalog(models)


def get_catalog() -> ModelCatalog:
    global _catalog
    if _catalog is None:
        with _catalog_lock:
            if _catalog is None:
                _catalog = load_catalog()
    return _catalog


def get_model(model_id: str) -> ModelDefinition:
    return get_catalog().get(model_id)


def list_models(category: Optional[str] = None) -> List[ModelDefinition]:
    return get_catalog().list(category)
