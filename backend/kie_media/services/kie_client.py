"""Async client for the kie.ai generation task API.

A generation is validate -> submit -> poll. Input is checked against the
model's compiled validator before any request goes out, so an invalid input
never leaves a half-submitted task behind. Polling backs off from 2s by 1.5x
per cycle up to 15s, and gives up after 10 minutes without cancelling the
remote task.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Union

import httpx
from pydantic import ValidationError as PydanticValidationError

from kie_media.core.config import (
    KIE_AI_API_KEY,
    KIE_BASE_URL,
    KIE_HTTP_TIMEOUT_SEC,
    KIE_POLL_INITIAL_MS,
    KIE_POLL_MAX_INTERVAL_MS,
    KIE_POLL_MAX_WAIT_MS,
    KIE_POLL_MULTIPLIER,
    KIE_STATUS_RETRIES,
)
from kie_media.core.errors import (
    ApiError,
    SubmissionError,
    TaskFailedError,
    TaskTimeoutError,
)
from kie_media.core.logging import logger
from kie_media.schemas.tasks import TaskResult, TaskState, TaskStatus
from kie_media.services.schema_compiler import SchemaCache, get_schema_cache
from kie_media.utils.time import monotonic_ms

CREATE_TASK_PATH = "/api/v1/jobs/createTask"
RECORD_INFO_PATH = "/api/v1/jobs/recordInfo"
SUCCESS_CODE = 200

ProgressCallback = Callable[[TaskState], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class PollPolicy:
    initial_interval_ms: float = KIE_POLL_INITIAL_MS
    multiplier: float = KIE_POLL_MULTIPLIER
    max_interval_ms: float = KIE_POLL_MAX_INTERVAL_MS
    max_wait_ms: float = KIE_POLL_MAX_WAIT_MS


DEFAULT_POLL_POLICY = PollPolicy()


def next_interval(previous_ms: float, policy: PollPolicy = DEFAULT_POLL_POLICY) -> float:
    return min(previous_ms * policy.multiplier, policy.max_interval_ms)


def backoff_intervals(policy: PollPolicy = DEFAULT_POLL_POLICY) -> Iterator[float]:
    interval = policy.initial_interval_ms
    while True:
        yield interval
        interval = next_interval(interval, policy)


def build_auth_headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": f"Bearer {api_key}",
        "Accept": "application/json",
        "Content-Type": "application/json",
    }


async def request_json(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    headers: Dict[str, str],
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    retries: int = 0,
    retry_delay: float = 0.5,
) -> Dict[str, Any]:
    """Send one request and return the decoded envelope.

    Connection errors, 429 and 5xx are retried ``retries`` times; anything
    still failing raises :class:`ApiError`.
    """
    attempt = 0
    while True:
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                params=params,
                json=json_body,
            )
        except httpx.TransportError as exc:
            if attempt < retries:
                logger.warning("kie request %s %s failed (%s), retrying", method, url, exc)
                await asyncio.sleep(retry_delay * (attempt + 1))
                attempt += 1
                continue
            raise ApiError(f"transport error: {exc}") from exc
        if response.status_code == 429 and attempt < retries:
            retry_after = response.headers.get("Retry-After")
            delay = retry_delay
            if retry_after and retry_after.isdigit():
                delay = max(retry_delay, float(retry_after))
            logger.warning("kie request %s %s rate limited, retrying in %.1fs", method, url, delay)
            await asyncio.sleep(delay)
            attempt += 1
            continue
        if response.status_code >= 500 and attempt < retries:
            logger.warning("kie request %s %s returned %s, retrying", method, url, response.status_code)
            await asyncio.sleep(retry_delay * (attempt + 1))
            attempt += 1
            continue
        if response.status_code >= 400:
            detail = response.text.strip() or response.reason_phrase
            raise ApiError(detail, code=response.status_code)
        try:
            payload = response.json()
        except ValueError as exc:
            raise ApiError("response is not valid JSON") from exc
        if not isinstance(payload, dict):
            raise ApiError("unexpected response shape")
        return payload


def parse_result(raw: Any) -> TaskResult:
    try:
        data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        return TaskResult.model_validate(data)
    except (ValueError, PydanticValidationError) as exc:
        raise ApiError(f"invalid result payload: {exc}") from exc


@dataclass
class KieClient:
    api_key: str
    base_url: str = KIE_BASE_URL
    schemas: Optional[SchemaCache] = None
    poll_policy: PollPolicy = DEFAULT_POLL_POLICY
    status_retries: int = KIE_STATUS_RETRIES
    retry_delay: float = 0.5
    http_client: Optional[httpx.AsyncClient] = None
    _owns_http_client: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("KIE_AI_API_KEY is not configured")
        self.base_url = self.base_url.rstrip("/")
        if self.schemas is None:
            self.schemas = get_schema_cache()
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(KIE_HTTP_TIMEOUT_SEC, connect=10.0)
            )
            self._owns_http_client = True

    async def __aenter__(self) -> "KieClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client and self.http_client is not None:
            await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        retries: int = 0,
    ) -> Dict[str, Any]:
        return await request_json(
            self.http_client,
            method,
            f"{self.base_url}{path}",
            build_auth_headers(self.api_key),
            params=params,
            json_body=json_body,
            retries=retries,
            retry_delay=self.retry_delay,
        )

    def validate(self, model_id: str, input: Dict[str, Any]) -> Dict[str, Any]:
        return self.schemas.validate(model_id, input)

    async def create_task(
        self,
        model_id: str,
        input: Dict[str, Any],
        callback_url: Optional[str] = None,
    ) -> str:
        validated = self.validate(model_id, input)
        body: Dict[str, Any] = {"model": model_id, "input": validated}
        if callback_url:
            body["callBackUrl"] = callback_url
        # submissions are never retried, a retry could create a second task
        try:
            payload = await self._request("POST", CREATE_TASK_PATH, json_body=body)
        except ApiError as exc:
            raise SubmissionError(exc.code, exc.message) from exc
        if payload.get("code") != SUCCESS_CODE:
            raise SubmissionError(payload.get("code"), payload.get("msg") or "")
        task_id = (payload.get("data") or {}).get("taskId")
        if not task_id:
            raise SubmissionError(payload.get("code"), "response did not include a taskId")
        logger.info("kie task created %s (%s)", task_id, model_id)
        return task_id

    async def get_status(self, task_id: str) -> TaskStatus:
        payload = await self._request(
            "GET",
            RECORD_INFO_PATH,
            params={"taskId": task_id},
            retries=self.status_retries,
        )
        if payload.get("code") != SUCCESS_CODE:
            raise ApiError(payload.get("msg") or "status request failed", code=payload.get("code"))
        data = payload.get("data") or {}
        raw_state = data.get("state")
        try:
            state = TaskState(raw_state)
        except ValueError:
            raise ApiError(f"unexpected task state {raw_state!r} for {task_id}") from None
        result = parse_result(data.get("resultJson")) if state is TaskState.success else None
        return TaskStatus(
            task_id=task_id,
            state=state,
            result=result,
            fail_msg=data.get("failMsg"),
            fail_code=data.get("failCode"),
        )

    async def wait_for(
        self, task_id: str, on_progress: Optional[ProgressCallback] = None
    ) -> TaskResult:
        policy = self.poll_policy
        intervals = backoff_intervals(policy)
        started = monotonic_ms()
        previous: Optional[TaskState] = None

        while monotonic_ms() - started < policy.max_wait_ms:
            status = await self.get_status(task_id)
            if status.state is not previous:
                logger.debug("kie task %s is %s", task_id, status.state.value)
                previous = status.state
            if on_progress is not None:
                outcome = on_progress(status.state)
                if inspect.isawaitable(outcome):
                    await outcome

            if status.state is TaskState.success:
                logger.info("kie task %s succeeded", task_id)
                return status.result
            if status.state is TaskState.fail:
                logger.warning(
                    "kie task %s failed: %s (%s)", task_id, status.fail_msg, status.fail_code
                )
                raise TaskFailedError(task_id, status.fail_msg or "", status.fail_code)

            await asyncio.sleep(next(intervals) / 1000)

        waited = monotonic_ms() - started
        logger.warning("kie task %s timed out after %d ms", task_id, waited)
        raise TaskTimeoutError(task_id, waited)

    async def generate(
        self,
        model_id: str,
        input: Dict[str, Any],
        callback_url: Optional[str] = None,
    ) -> TaskResult:
        task_id = await self.create_task(model_id, input, callback_url)
        return await self.wait_for(task_id)


def create_kie_client(api_key: Optional[str] = None, **kwargs: Any) -> KieClient:
    return KieClient(api_key or KIE_AI_API_KEY, **kwargs)
