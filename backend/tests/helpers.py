"""Builders for catalog definitions and kie.ai response envelopes."""

import json

import httpx

from kie_media.schemas.catalog import ModelDefinition
from kie_media.services.kie_client import CREATE_TASK_PATH, RECORD_INFO_PATH, PollPolicy

FAST_POLL_POLICY = PollPolicy(
    initial_interval_ms=1, multiplier=1.5, max_interval_ms=5, max_wait_ms=2000
)


def make_definition(model_id: str, fields: dict, **extra) -> ModelDefinition:
    return ModelDefinition.model_validate(
        {
            "id": model_id,
            "name": extra.get("name", model_id),
            "provider": extra.get("provider", "test"),
            "type": extra.get("type", "image"),
            "pricing": extra.get("pricing", {}),
            "input": fields,
        }
    )


def envelope(data=None, code=200, msg="success") -> dict:
    return {"code": code, "msg": msg, "data": data}


def status_payload(
    state: str, result_urls=None, fail_msg=None, fail_code=None, task_id="task-1"
) -> dict:
    data = {
        "taskId": task_id,
        "state": state,
        "resultJson": "",
        "failMsg": fail_msg,
        "failCode": fail_code,
    }
    if result_urls is not None:
        data["resultJson"] = json.dumps({"resultUrls": result_urls})
    return envelope(data)


class Recorder:
    """MockTransport handler serving queued kie.ai responses.

    Status responses are consumed in order and the last one repeats. An
    ``httpx.Response`` is returned as is and an exception is raised.
    ``tasks`` maps a task id to its own status sequence.
    """

    def __init__(self, create=None, statuses=(), tasks=None):
        self.create = create if create is not None else envelope({"taskId": "task-1"})
        self.statuses = list(statuses)
        self.tasks = {task_id: list(items) for task_id, items in (tasks or {}).items()}
        self.requests = []

    def status_requests(self):
        return [request for request in self.requests if request.url.path == RECORD_INFO_PATH]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == CREATE_TASK_PATH:
            return self._respond(self.create)
        if request.url.path == RECORD_INFO_PATH:
            queue = self.tasks.get(request.url.params["taskId"], self.statuses)
            item = queue.pop(0) if len(queue) > 1 else queue[0]
            return self._respond(item)
        return httpx.Response(404)

    @staticmethod
    def _respond(item) -> httpx.Response:
        if isinstance(item, httpx.Response):
            return item
        if isinstance(item, Exception):
            raise item
        return httpx.Response(200, json=item)
