"""
milestone/models.py -- Domain dataclasses for the milestone component.

These are pure data containers with zero logic. Queries, ordering and
relation loading live in milestone/store.py.

id is None before a record is written to the database.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class Task:
    """A unit of work. status_id points at the TaskStatus it currently holds."""

    title: str
    status_id: int
    description: Optional[str] = None
    author_id: Optional[int] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set on insert


@dataclass
class TaskStatus:
    """A column on the task board.

    sort defines display order: lower values first, ties broken by id.
    tasks is only populated when the "tasks" relation is requested; an empty
    list otherwise does not mean the status is unused.
    """

    title: str
    sort: int = 0
    id: Optional[int] = None
    tasks: list[Task] = field(default_factory=list)
