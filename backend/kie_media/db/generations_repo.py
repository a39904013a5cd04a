import json
import uuid
from typing import Any, Dict, List, Optional

from kie_media.db.connection import execute, fetchall, fetchone
from kie_media.utils.time import utc_now

_JSON_COLUMNS = {"input", "result", "error"}


def _row_to_generation(row: Any) -> Dict[str, Any]:
    return {
        "generation_id": row["generation_id"],
        "model_id": row["model_id"],
        "task_id": row["task_id"],
        "status": row["status"],
        "remote_state": row["remote_state"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "input": json.loads(row["input_json"]) if row["input_json"] else {},
        "result": json.loads(row["result_json"]) if row["result_json"] else None,
        "error": json.loads(row["error_json"]) if row["error_json"] else None,
    }


async def create_generation(
    model_id: str, input: Dict[str, Any], task_id: Optional[str] = None
) -> str:
    generation_id = f"gen_{uuid.uuid4().hex}"
    now = utc_now()
    await execute(
        """
        insert into generations (
          generation_id, model_id, task_id, status, remote_state,
          created_at, updated_at, input_json, result_json, error_json
        )
        values (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            generation_id,
            model_id,
            task_id,
            "submitted",
            None,
            now,
            now,
            json.dumps(input),
            None,
            None,
        ),
    )
    return generation_id


async def update_generation(generation_id: str, **fields: Any) -> None:
    if not fields:
        return
    fields["updated_at"] = utc_now()
    columns = []
    values: List[Any] = []
    for key, value in fields.items():
        if key in _JSON_COLUMNS:
            columns.append(f"{key}_json = ?")
            values.append(json.dumps(value) if value is not None else None)
        else:
            columns.append(f"{key} = ?")
            values.append(value)
    values.append(generation_id)
    await execute(
        f"update generations set {', '.join(columns)} where generation_id = ?",
        tuple(values),
    )


async def fetch_generation(generation_id: str) -> Optional[Dict[str, Any]]:
    row = await fetchone(
        "select * from generations where generation_id = ?", (generation_id,)
    )
    if row is None:
        return None
    return _row_to_generation(row)


async def fetch_generations(limit: int = 200) -> List[Dict[str, Any]]:
    rows = await fetchall(
        "select * from generations order by created_at desc limit ?", (limit,)
    )
    return [_row_to_generation(row) for row in rows]


async def record_event(
    generation_id: str,
    level: str,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> None:
    await execute(
        """
        insert into generation_events (generation_id, created_at, level, message, meta_json)
        values (?, ?, ?, ?, ?)
        """,
        (generation_id, utc_now(), level, message, json.dumps(meta) if meta else None),
    )


async def fetch_events(generation_id: str) -> List[Dict[str, Any]]:
    rows = await fetchall(
        """
        select * from generation_events
        where generation_id = ?
        order by event_id asc
        """,
        (generation_id,),
    )
    return [
        {
            "created_at": row["created_at"],
            "level": row["level"],
            "message": row["message"],
            "meta": json.loads(row["meta_json"]) if row["meta_json"] else None,
        }
        for row in rows
    ]
