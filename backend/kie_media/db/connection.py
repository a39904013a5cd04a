import asyncio
import sqlite3
from typing import Any, Callable, Optional, TypeVar

from kie_media.core.config import DB_PATH

T = TypeVar("T")

SCHEMA = """
create table if not exists generations (
  generation_id text primary key,
  model_id text not null,
  task_id text,
  status text not null,
  remote_state text,
  created_at text not null,
  updated_at text not null,
  input_json text,
  result_json text,
  error_json text
);

create table if not exists generation_events (
  event_id integer primary key,
  generation_id text not null,
  created_at text not null,
  level text not null,
  message text not null,
  meta_json text
);

create index if not exists idx_generation_events_generation
on generation_events (generation_id);

create index if not exists idx_generations_created
on generations (created_at);
"""

db_lock = asyncio.Lock()
db_conn: sqlite3.Connection | None = None


async def connect_db(path: Optional[str] = None) -> None:
    """Open the generations database, creating the tables on first use."""
    global db_conn, db_lock
    # the lock belongs to the loop that opened the connection
    db_lock = asyncio.Lock()
    db_conn = sqlite3.connect(path or DB_PATH, check_same_thread=False)
    db_conn.row_factory = sqlite3.Row
    db_conn.executescript(SCHEMA)
    db_conn.commit()


async def close_db() -> None:
    global db_conn
    if db_conn:
        db_conn.close()
        db_conn = None


def _ensure_conn() -> sqlite3.Connection:
    if db_conn is None:
        raise RuntimeError("database not initialized")
    return db_conn


async def _run(operation: Callable[[sqlite3.Connection], T]) -> T:
    async with db_lock:
        return await asyncio.to_thread(lambda: operation(_ensure_conn()))


async def execute(query: str, params: tuple[Any, ...] = ()) -> None:
    def _write(conn: sqlite3.Connection) -> None:
        with conn:
            conn.execute(query, params)

    await _run(_write)


async def fetchone(query: str, params: tuple[Any, ...] = ()) -> Optional[sqlite3.Row]:
    return await _run(lambda conn: conn.execute(query, params).fetchone())


async def fetchall(query: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
    return await _run(lambda conn: conn.execute(query, params).fetchall())
