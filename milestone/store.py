"""
milestone/store.py -- SQLAlchemy Core persistence for task statuses and tasks.

Pattern: Repository + Data Mapper (see components/service.py).
_row_to_* functions map rows to dataclasses, _*_values map them back, and
_load_status_tasks attaches the one-to-many status -> tasks relation with a
single IN query instead of one query per status.

Referential policy: task.status_id references task_status.id, but deleting a
status that still owns tasks is not blocked here. Whatever the database does
with the foreign key (SQLite: nothing unless PRAGMA foreign_keys is on) is
the behaviour.

Usage:
    statuses = TaskStatusService(engine, cache)
    todo = statuses.save(TaskStatus(title="Todo", sort=1))
    tasks = TaskService(engine, cache)
    tasks.save(Task(title="Write docs", status_id=todo.id))
    statuses.read_all(FindOptions(relations=["tasks"]), cached=True)
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, select
from sqlalchemy.engine import Connection, Engine

from components.service import ComponentService, Repository
from core.database import metadata
from milestone.models import Task, TaskStatus

if TYPE_CHECKING:
    from cache.store import CacheStore

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

task_status_table = Table(
    "task_status",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("sort", Integer, nullable=False, server_default="0"),
)

task_table = Table(
    "task",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(255), nullable=False),
    Column("description", Text),
    Column("status_id", Integer, ForeignKey("task_status.id"), nullable=False),
    Column("author_id", Integer, ForeignKey("users.id")),
    Column("created_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Mappers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_task(row) -> Task:
    return Task(
        id=row.id,
        title=row.title,
        description=row.description,
        status_id=row.status_id,
        author_id=row.author_id,
        created_at=row.created_at,
    )


def _task_values(task: Task) -> dict:
    if not task.created_at:
        task.created_at = _now_iso()
    return {
        "title": task.title,
        "description": task.description,
        "status_id": task.status_id,
        "author_id": task.author_id,
        "created_at": task.created_at,
    }


def _row_to_status(row) -> TaskStatus:
    return TaskStatus(id=row.id, title=row.title, sort=row.sort)


def _status_values(status: TaskStatus) -> dict:
    # tasks is a relation, not a column -- never written through the status.
    return {"title": status.title, "sort": status.sort}


def _load_status_tasks(conn: Connection, statuses: list[TaskStatus]) -> None:
    by_id = {s.id: s for s in statuses}
    rows = conn.execute(
        select(task_table).where(task_table.c.status_id.in_(list(by_id))).order_by(task_table.c.id)
    ).fetchall()
    grouped: dict[int, list[Task]] = defaultdict(list)
    for row in rows:
        grouped[row.status_id].append(_row_to_task(row))
    for status in statuses:
        status.tasks = grouped.get(status.id, [])


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


class TaskStatusService(ComponentService[TaskStatus]):
    model = TaskStatus
    cache_name = "taskstatus"
    default_order = {"sort": "ASC", "id": "ASC"}

    def __init__(self, engine: Engine, cache: Optional[CacheStore] = None) -> None:
        repo = Repository(
            engine,
            task_status_table,
            _row_to_status,
            _status_values,
            relations={"tasks": _load_status_tasks},
        )
        super().__init__(repo, cache)

    def from_cache(self, data: dict) -> TaskStatus:
        tasks = [Task(**t) for t in data.get("tasks", [])]
        return TaskStatus(**{**data, "tasks": tasks})


class TaskService(ComponentService[Task]):
    model = Task
    cache_name = "task"
    default_order = {"id": "ASC"}
    # Cached status lists carry their tasks.
    invalidates = ("taskstatus",)

    def __init__(self, engine: Engine, cache: Optional[CacheStore] = None) -> None:
        super().__init__(Repository(engine, task_table, _row_to_task, _task_values), cache)
