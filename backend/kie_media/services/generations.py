import asyncio
import time
from typing import Any, Dict, Optional

from kie_media.core.errors import KieError, TaskFailedError, TaskTimeoutError
from kie_media.db import generations_repo
from kie_media.schemas.tasks import TaskState
from kie_media.services.catalog import get_catalog
from kie_media.services.kie_client import KieClient
from kie_media.websocket.manager import manager

# generation_id -> tracker; each tracker polls on its own schedule
active_trackers: Dict[str, asyncio.Task] = {}
started_at = time.time()


async def start_generation(
    client: KieClient,
    model_id: str,
    raw_input: Dict[str, Any],
    callback_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate, submit and start tracking one generation.

    Raises ValidationError/UnknownModelError before anything is sent and
    SubmissionError when the service rejects the task; nothing is persisted
    in either case.
    """
    normalized = client.validate(model_id, raw_input)
    task_id = await client.create_task(model_id, normalized, callback_url)
    generation_id = await generations_repo.create_generation(model_id, normalized, task_id)
    await generations_repo.record_event(
        generation_id, "info", "task submitted", {"task_id": task_id}
    )
    await manager.emit_log("info", f"generation {generation_id} submitted ({model_id})")
    track_generation(client, generation_id, task_id)
    return {"generation_id": generation_id, "task_id": task_id, "status": "submitted"}


def track_generation(client: KieClient, generation_id: str, task_id: str) -> asyncio.Task:
    tracker = asyncio.create_task(run_generation_tracker(client, generation_id, task_id))
    active_trackers[generation_id] = tracker
    tracker.add_done_callback(lambda _: active_trackers.pop(generation_id, None))
    return tracker


async def _finish(
    generation_id: str, task_id: str, status: str, level: str, message: str, **fields: Any
) -> None:
    await generations_repo.update_generation(generation_id, status=status, **fields)
    await generations_repo.record_event(generation_id, level, message, {"task_id": task_id})
    await manager.publish(
        "generation.status",
        generation_id=generation_id,
        task_id=task_id,
        status=status,
    )


async def run_generation_tracker(client: KieClient, generation_id: str, task_id: str) -> None:
    last_state: Optional[TaskState] = None

    async def on_progress(state: TaskState) -> None:
        nonlocal last_state
        if state is last_state:
            return
        last_state = state
        await generations_repo.update_generation(
            generation_id, status="running", remote_state=state.value
        )
        await manager.publish(
            "generation.progress",
            generation_id=generation_id,
            task_id=task_id,
            state=state.value,
        )

    try:
        result = await client.wait_for(task_id, on_progress=on_progress)
    except TaskFailedError as exc:
        await _finish(
            generation_id, task_id, "failed", "error", "task failed",
            error={"message": exc.message, "code": exc.code},
        )
        return
    except TaskTimeoutError as exc:
        await _finish(
            generation_id, task_id, "timeout", "warn", "task timed out",
            error={"message": str(exc), "waited_ms": exc.waited_ms},
        )
        return
    except KieError as exc:
        await _finish(
            generation_id, task_id, "failed", "error", "task status unavailable",
            error={"message": str(exc)},
        )
        return
    except Exception as exc:  # pragma: no cover - safety net
        await _finish(
            generation_id, task_id, "failed", "error", "tracker crashed",
            error={"message": str(exc)},
        )
        raise

    await _finish(
        generation_id, task_id, "succeeded", "info", "task succeeded",
        result={"resultUrls": result.result_urls},
    )


def status_snapshot() -> Dict[str, Any]:
    return {
        "uptime_sec": int(time.time() - started_at),
        "trackers": {"active": len(active_trackers)},
        "catalog": {"models": len(get_catalog())},
    }
