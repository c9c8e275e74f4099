"""
api/routes/v1/tasks.py -- Task routes.

Routes:
  GET    /tasks            -- list tasks, optional ?status_id= filter  (task:read)
  POST   /tasks            -- create a task authored by the caller     (task:create)
  GET    /tasks/{task_id}  -- task detail                              (task:read)
  PUT    /tasks/{task_id}  -- edit / move to another status            (task:update)
  DELETE /tasks/{task_id}  -- delete                                   (task:delete)

A task's status_id must name an existing task status; an unknown one is
rejected with 422 before anything is written.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import TaskCreate, TaskResponse, TaskUpdate
from auth.dependencies import auth_service, get_current_user
from auth.models import User
from auth.permissions import RESOURCE_TASK
from components.service import FindOptions
from milestone.models import Task
from milestone.store import TaskService, TaskStatusService

router = APIRouter(dependencies=[Depends(auth_service.is_authorized())])


def _get_or_404(tasks: TaskService, task_id: int) -> Task:
    task = tasks.read(FindOptions(where={"id": task_id}))
    if task is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Task not found."},
        )
    return task


def _require_status(statuses: TaskStatusService, status_id: int) -> None:
    if statuses.read(FindOptions(where={"id": status_id})) is None:
        raise HTTPException(
            status_code=422,
            detail={"code": "unknown_status", "message": f"Task status {status_id} does not exist."},
        )


@router.get(
    "/tasks",
    response_model=list[TaskResponse],
    dependencies=[Depends(auth_service.has_permission(RESOURCE_TASK, "read"))],
)
def list_tasks(request: Request, status_id: Optional[int] = None) -> list[TaskResponse]:
    tasks: TaskService = request.app.state.tasks
    where = {"status_id": status_id} if status_id is not None else {}
    return [TaskResponse.from_task(t) for t in tasks.read_all(FindOptions(where=where), cached=True)]


@router.post(
    "/tasks",
    response_model=TaskResponse,
    status_code=201,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_TASK, "create"))],
)
def create_task(
    request: Request,
    body: TaskCreate,
    current_user: User = Depends(get_current_user),
) -> TaskResponse:
    _require_status(request.app.state.task_statuses, body.status_id)
    tasks: TaskService = request.app.state.tasks
    task = tasks.save(
        Task(
            title=body.title,
            description=body.description,
            status_id=body.status_id,
            author_id=current_user.id,
        )
    )
    return TaskResponse.from_task(task)


@router.get(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_TASK, "read"))],
)
def get_task(request: Request, task_id: int) -> TaskResponse:
    return TaskResponse.from_task(_get_or_404(request.app.state.tasks, task_id))


@router.put(
    "/tasks/{task_id}",
    response_model=TaskResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_TASK, "update"))],
)
def update_task(request: Request, task_id: int, body: TaskUpdate) -> TaskResponse:
    tasks: TaskService = request.app.state.tasks
    task = _get_or_404(tasks, task_id)
    if body.status_id is not None and body.status_id != task.status_id:
        _require_status(request.app.state.task_statuses, body.status_id)
        task.status_id = body.status_id
    if body.title is not None:
        task.title = body.title
    if body.description is not None:
        task.description = body.description
    tasks.save(task)
    return TaskResponse.from_task(task)


@router.delete(
    "/tasks/{task_id}",
    status_code=204,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_TASK, "delete"))],
)
def delete_task(request: Request, task_id: int) -> Response:
    tasks: TaskService = request.app.state.tasks
    tasks.delete(_get_or_404(tasks, task_id))
    return Response(status_code=204)
