"""
api/routes/v1/task_status.py -- Task status (board column) routes.

Routes:
  GET    /task-status              -- all statuses by sort order, with tasks  (status:read)
  POST   /task-status              -- create a status                         (status:create)
  GET    /task-status/{status_id}  -- one status with its tasks               (status:read)
  PUT    /task-status/{status_id}  -- rename / re-sort                        (status:update)
  DELETE /task-status/{status_id}  -- delete                                  (status:delete)

The list endpoint is served through the component cache (bucket
"taskstatus"); every write through TaskStatusService or TaskService drops
that bucket.

Deleting a status that still owns tasks is allowed; what happens to the
tasks is up to the database's foreign key policy.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import TaskStatusCreate, TaskStatusResponse, TaskStatusUpdate
from auth.dependencies import auth_service
from auth.permissions import RESOURCE_STATUS
from components.service import FindOptions
from milestone.models import TaskStatus
from milestone.store import TaskStatusService

router = APIRouter(dependencies=[Depends(auth_service.is_authorized())])


def _get_or_404(statuses: TaskStatusService, status_id: int, relations: list[str] | None = None) -> TaskStatus:
    status = statuses.read(FindOptions(where={"id": status_id}, relations=relations or []))
    if status is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Task status not found."},
        )
    return status


@router.get(
    "/task-status",
    response_model=list[TaskStatusResponse],
    dependencies=[Depends(auth_service.has_permission(RESOURCE_STATUS, "read"))],
)
def list_statuses(request: Request) -> list[TaskStatusResponse]:
    """Return all statuses ordered by sort (then id), each with its tasks."""
    statuses: TaskStatusService = request.app.state.task_statuses
    found = statuses.read_all(FindOptions(relations=["tasks"]), cached=True)
    return [TaskStatusResponse.from_status(s) for s in found]


@router.post(
    "/task-status",
    response_model=TaskStatusResponse,
    status_code=201,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_STATUS, "create"))],
)
def create_status(request: Request, body: TaskStatusCreate) -> TaskStatusResponse:
    statuses: TaskStatusService = request.app.state.task_statuses
    status = statuses.save(TaskStatus(title=body.title, sort=body.sort))
    return TaskStatusResponse.from_status(status)


@router.get(
    "/task-status/{status_id}",
    response_model=TaskStatusResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_STATUS, "read"))],
)
def get_status(request: Request, status_id: int) -> TaskStatusResponse:
    status = _get_or_404(request.app.state.task_statuses, status_id, relations=["tasks"])
    return TaskStatusResponse.from_status(status)


@router.put(
    "/task-status/{status_id}",
    response_model=TaskStatusResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_STATUS, "update"))],
)
def update_status(request: Request, status_id: int, body: TaskStatusUpdate) -> TaskStatusResponse:
    statuses: TaskStatusService = request.app.state.task_statuses
    status = _get_or_404(statuses, status_id)
    if body.title is not None:
        status.title = body.title
    if body.sort is not None:
        status.sort = body.sort
    statuses.save(status)
    return TaskStatusResponse.from_status(status)


@router.delete(
    "/task-status/{status_id}",
    status_code=204,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_STATUS, "delete"))],
)
def delete_status(request: Request, status_id: int) -> Response:
    statuses: TaskStatusService = request.app.state.task_statuses
    statuses.delete(_get_or_404(statuses, status_id))
    return Response(status_code=204)
