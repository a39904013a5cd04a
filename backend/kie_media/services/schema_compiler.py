"""Compile catalog model definitions into input validators.

Every field kind maps onto a pydantic annotation; the compiled pydantic model
is wrapped in a :class:`Validator` that translates pydantic errors into
:class:`~kie_media.core.errors.ValidationError` issues of the form
``{"field": ..., "rule": ..., "message": ...}``.
"""

import re
import threading
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Set, Type, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    create_model,
)
from pydantic import ValidationError as PydanticValidationError

from kie_media.core.config import KIE_UNKNOWN_FIELDS
from kie_media.core.errors import CatalogError, ValidationError
from kie_media.schemas.catalog import DEFAULT_ARRAY_MAX, FieldDefinition, FieldKind, ModelDefinition
from kie_media.services.catalog import get_catalog
from kie_media.utils.urls import UrlString

UNKNOWN_FIELD_POLICIES = ("allow", "ignore", "forbid")

# pydantic error type -> rule reported to callers
_RULES = {
    "missing": "missing",
    "string_too_long": "too_long",
    "too_long": "too_long",
    "greater_than_equal": "too_small",
    "less_than_equal": "too_big",
    "literal_error": "not_in_enum",
    "invalid_url": "invalid_url",
    "extra_forbidden": "unknown_field",
    "finite_number": "invalid_type",
}


# NaN and infinity never reach the bound checks
Number = Union[StrictInt, Annotated[StrictFloat, Field(allow_inf_nan=False)]]


def field_annotation(field: FieldDefinition) -> Any:
    kind = field.kind
    if kind is FieldKind.string:
        if field.max:
            return Annotated[StrictStr, Field(max_length=int(field.max))]
        return StrictStr
    if kind is FieldKind.number:
        bounds: Dict[str, Any] = {}
        if field.min is not None:
            bounds["ge"] = field.min
        if field.max is not None:
            bounds["le"] = field.max
        return Annotated[Number, Field(**bounds)] if bounds else Number
    if kind is FieldKind.boolean:
        return StrictBool
    if kind is FieldKind.enum:
        return Literal[tuple(field.values)]
    if kind is FieldKind.array:
        item = UrlString if field.items is FieldKind.url else StrictStr
        max_items = int(field.max) if field.max is not None else DEFAULT_ARRAY_MAX
        return Annotated[List[item], Field(max_length=max_items)]
    if kind is FieldKind.url:
        return UrlString
    raise CatalogError(f"unsupported field kind: {kind}")


def _issues(exc: PydanticValidationError) -> List[Dict[str, Any]]:
    issues: List[Dict[str, Any]] = []
    seen: Set[Optional[str]] = set()
    for error in exc.errors(include_url=False):
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else None
        # union members report one error each, keep the first
        if field in seen:
            continue
        seen.add(field)
        message = error.get("msg", "")
        index = [part for part in loc[1:] if isinstance(part, int)]
        if index:
            message = f"item {index[0]}: {message}"
        issues.append(
            {
                "field": field,
                "rule": _RULES.get(error.get("type", ""), "invalid_type"),
                "message": message,
            }
        )
    return issues


class Validator:
    """Checks and normalizes raw input for one model."""

    def __init__(
        self,
        model_id: str,
        input_model: Type[BaseModel],
        internal_names: Dict[str, str],
        omittable: Set[str],
    ) -> None:
        self.model_id = model_id
        self.input_model = input_model
        self._internal_names = internal_names
        self._omittable = omittable

    @property
    def fields(self) -> List[str]:
        return list(self._internal_names)

    def validate(self, raw: Any) -> Dict[str, Any]:
        if not isinstance(raw, Mapping):
            raise ValidationError(
                self.model_id,
                [{"field": None, "rule": "invalid_type", "message": "Input should be a mapping"}],
            )
        try:
            instance = self.input_model.model_validate(dict(raw))
        except PydanticValidationError as exc:
            raise ValidationError(self.model_id, _issues(exc)) from None
        values = instance.model_dump(by_alias=True)
        for name in self._omittable:
            if self._internal_names[name] not in instance.model_fields_set:
                values.pop(name, None)
        return values


def _model_name(model_id: str) -> str:
    return "Input_" + re.sub(r"\W", "_", model_id)


def compile_model(
    definition: ModelDefinition, unknown_fields: str = KIE_UNKNOWN_FIELDS
) -> Validator:
    if unknown_fields not in UNKNOWN_FIELD_POLICIES:
        raise ValueError(
            f"unknown_fields must be one of {', '.join(UNKNOWN_FIELD_POLICIES)}, got {unknown_fields!r}"
        )
    fields: Dict[str, Any] = {}
    internal_names: Dict[str, str] = {}
    omittable: Set[str] = set()
    # aliases keep catalog names like "schema" or "model_id" off BaseModel attributes
    for index, (name, field) in enumerate(definition.input.items()):
        internal = f"field_{index}"
        internal_names[name] = internal
        if field.has_default:
            default = field.default
        elif field.required:
            default = ...
        else:
            default = None
            omittable.add(name)
        fields[internal] = (field_annotation(field), Field(default, alias=name))

    input_model = create_model(
        _model_name(definition.id),
        __config__=ConfigDict(extra=unknown_fields, populate_by_name=False),
        **fields,
    )
    return Validator(definition.id, input_model, internal_names, omittable)


class SchemaCache:
    """Compiled validators keyed by model id.

    Different ids may compile concurrently; the lock only guards insertion, so
    two racing compiles of the same id keep whichever finished first.
    """

    def __init__(self, catalog: Any, unknown_fields: str = KIE_UNKNOWN_FIELDS) -> None:
        self._catalog = catalog
        self._unknown_fields = unknown_fields
        self._validators: Dict[str, Validator] = {}
        self._lock = threading.Lock()

    def get(self, model_id: str) -> Validator:
        validator = self._validators.get(model_id)
        if validator is not None:
            return validator
        compiled = compile_model(self._catalog.get(model_id), self._unknown_fields)
        with self._lock:
            return self._validators.setdefault(model_id, compiled)

    def validate(self, model_id: str, raw: Any) -> Dict[str, Any]:
        return self.get(model_id).validate(raw)

    def clear(self) -> None:
        with self._lock:
            self._validators.clear()


_default_cache: Optional[SchemaCache] = None
_default_cache_lock = threading.Lock()


def get_schema_cache() -> SchemaCache:
    global _default_cache
    if _default_cache is None:
        with _default_cache_lock:
            if _default_cache is None:
                _default_cache = SchemaCache(get_catalog())
    return _default_cache


def validate(model_id: str, raw: Any) -> Dict[str, Any]:
    return get_schema_cache().validate(model_id, raw)
