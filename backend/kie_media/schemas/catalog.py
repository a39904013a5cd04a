from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FieldKind(str, Enum):
    string = "string"
    number = "number"
    boolean = "boolean"
    enum = "enum"
    array = "array"
    url = "url"


ARRAY_ITEM_KINDS = {FieldKind.string, FieldKind.url}
DEFAULT_ARRAY_MAX = 10


class GenerationType(str, Enum):
    video = "video"
    image = "image"
    audio = "audio"


class FieldDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: FieldKind = Field(alias="type")
    values: Optional[List[str]] = None
    items: Optional[FieldKind] = None
    max: Optional[Union[int, float]] = None
    min: Optional[Union[int, float]] = None
    default: Any = None
    required: bool = False

    @model_validator(mode="after")
    def _check_constraints(self) -> "FieldDefinition":
        if self.kind is FieldKind.enum and not self.values:
            raise ValueError("enum field requires a non-empty 'values' list")
        if self.kind is FieldKind.array and (self.items or FieldKind.string) not in ARRAY_ITEM_KINDS:
            raise ValueError(f"array items must be one of: string, url (got {self.items.value})")
        return self

    @property
    def has_default(self) -> bool:
        return "default" in self.model_fields_set and self.default is not None


class ModelDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    provider: str
    type: GenerationType
    pricing: Dict[str, Any] = Field(default_factory=dict)
    input: Dict[str, FieldDefinition] = Field(default_factory=dict)


class ModelSummary(BaseModel):
    id: str
    name: str
    provider: str
    type: GenerationType


class ModelsResponse(BaseModel):
    models: List[ModelSummary]
