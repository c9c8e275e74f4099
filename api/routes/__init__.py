"""
api/routes/ -- Route registrar.

register_component_routes() composes the per-domain route modules under a
common path prefix. It defines no paths of its own; each module under
v1/ owns its paths and its auth policy.

  global    -- auth, users
  milestone -- task statuses, tasks
"""

from __future__ import annotations

from fastapi import APIRouter, FastAPI

from api.routes.v1.auth import router as auth_router
from api.routes.v1.task_status import router as task_status_router
from api.routes.v1.tasks import router as tasks_router
from api.routes.v1.users import router as users_router


def register_global_routes(target: FastAPI | APIRouter, prefix: str = "") -> None:
    target.include_router(auth_router, prefix=prefix, tags=["Auth"])
    target.include_router(users_router, prefix=prefix, tags=["Users"])


def register_milestone_routes(target: FastAPI | APIRouter, prefix: str = "") -> None:
    target.include_router(task_status_router, prefix=prefix, tags=["Task Status"])
    target.include_router(tasks_router, prefix=prefix, tags=["Tasks"])


def register_component_routes(target: FastAPI | APIRouter, prefix: str = "") -> None:
    """Mount every component's routes on target under prefix."""
    register_global_routes(target, prefix)
    register_milestone_routes(target, prefix)
