from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GenerationCreate(BaseModel):
    model: str = Field(..., min_length=1)
    input: Dict[str, Any] = Field(default_factory=dict)
    callback_url: Optional[str] = None


class GenerationResponse(BaseModel):
    generation_id: str
    task_id: str
    status: str


class GenerationRecord(BaseModel):
    generation_id: str
    model_id: str
    task_id: Optional[str] = None
    status: str
    remote_state: Optional[str] = None
    created_at: str
    updated_at: str
    input: Dict[str, Any] = Field(default_factory=dict)
    result: Optional[Dict[str, Any]] = None
    error: Optional[Dict[str, Any]] = None
    events: List[Dict[str, Any]] = Field(default_factory=list)


class GenerationsResponse(BaseModel):
    generations: List[GenerationRecord]


class ValidateResponse(BaseModel):
    model: str
    input: Dict[str, Any]
