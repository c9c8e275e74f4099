"""
API request and response models for Aionic REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
milestone/models.py, which own the internal domain representation. Route
handlers map between the two via the from_* factory classmethods.

Password hashes never leave the domain layer: UserResponse has no password
field.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from milestone.models import Task, TaskStatus

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    admin = "admin"
    user = "user"


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

# bcrypt refuses secrets longer than this many bytes.
BCRYPT_MAX_BYTES = 72


def _check_password_bytes(value: Optional[str]) -> Optional[str]:
    if value is not None and len(value.encode("utf-8")) > BCRYPT_MAX_BYTES:
        raise ValueError(f"password must be at most {BCRYPT_MAX_BYTES} bytes when UTF-8 encoded")
    return value


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/login and POST /api/v1/auth/token."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user_id: int


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=8, max_length=64)
    firstname: str = Field(default="", max_length=100)
    lastname: str = Field(default="", max_length=100)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(RegisterRequest):
    """Request body for POST /api/v1/users (admin)."""

    role: RoleEnum = RoleEnum.user
    active: bool = True


class UserUpdate(BaseModel):
    """Request body for PUT /api/v1/users/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    firstname: Optional[str] = Field(default=None, max_length=100)
    lastname: Optional[str] = Field(default=None, max_length=100)
    password: Optional[str] = Field(default=None, min_length=8, max_length=64)
    role: Optional[RoleEnum] = None
    active: Optional[bool] = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: Optional[str]) -> Optional[str]:
        return _check_password_bytes(value)


class UserResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    email: str
    firstname: str
    lastname: str
    role: str
    active: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            firstname=user.firstname,
            lastname=user.lastname,
            role=user.role,
            active=user.active,
            created_at=user.created_at,
        )


# ---------------------------------------------------------------------------
# Tasks and task statuses
# ---------------------------------------------------------------------------


class TaskCreate(BaseModel):
    """Request body for POST /api/v1/tasks."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    status_id: int


class TaskUpdate(BaseModel):
    """Request body for PUT /api/v1/tasks/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    status_id: Optional[int] = None


class TaskResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str]
    status_id: int
    author_id: Optional[int]
    created_at: str

    @classmethod
    def from_task(cls, task: Task) -> "TaskResponse":
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status_id=task.status_id,
            author_id=task.author_id,
            created_at=task.created_at,
        )


class TaskStatusCreate(BaseModel):
    """Request body for POST /api/v1/task-status."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=1, max_length=255)
    sort: int = 0


class TaskStatusUpdate(BaseModel):
    """Request body for PUT /api/v1/task-status/{id}. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sort: Optional[int] = None


class TaskStatusResponse(BaseModel):
    """A task status. tasks is populated only on endpoints that load the relation."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    sort: int
    tasks: list[TaskResponse] = Field(default_factory=list)

    @classmethod
    def from_status(cls, status: TaskStatus) -> "TaskStatusResponse":
        return cls(
            id=status.id,
            title=status.title,
            sort=status.sort,
            tasks=[TaskResponse.from_task(t) for t in status.tasks],
        )
