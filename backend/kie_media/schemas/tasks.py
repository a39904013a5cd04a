from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from kie_media.utils.urls import UrlString


class TaskState(str, Enum):
    waiting = "waiting"
    queuing = "queuing"
    generating = "generating"
    success = "success"
    fail = "fail"

    @property
    def terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({TaskState.success, TaskState.fail})


class TaskResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    result_urls: List[UrlString] = Field(alias="resultUrls")


class TaskStatus(BaseModel):
    task_id: str
    state: TaskState
    result: Optional[TaskResult] = None
    fail_msg: Optional[str] = None
    fail_code: Any = None
