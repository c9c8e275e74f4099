"""
api/routes/v1/users.py -- User management routes.

Routes:
  GET    /users            -- list users                (user:read)
  POST   /users            -- create a user             (user:create)
  GET    /users/{user_id}  -- user detail               (user:read)
  PUT    /users/{user_id}  -- update profile/role/flag  (user:update)
  DELETE /users/{user_id}  -- delete a user             (user:delete)

Guards:
  Users cannot deactivate or delete their own account -- an admin doing so
  by accident would lock themselves out.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import UserCreate, UserResponse, UserUpdate
from auth.dependencies import auth_service, get_current_user
from auth.models import User
from auth.permissions import RESOURCE_USER
from auth.store import UserService
from auth.tokens import hash_password
from components.service import FindOptions

# Router-level dependency authenticates every route with the default strategy;
# each handler adds its own permission check.
router = APIRouter(dependencies=[Depends(auth_service.is_authorized())])


def _get_or_404(users: UserService, user_id: int) -> User:
    user = users.read(FindOptions(where={"id": user_id}))
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return user


@router.get(
    "/users",
    response_model=list[UserResponse],
    dependencies=[Depends(auth_service.has_permission(RESOURCE_USER, "read"))],
)
def list_users(request: Request) -> list[UserResponse]:
    users: UserService = request.app.state.users
    return [UserResponse.from_user(u) for u in users.read_all(cached=True)]


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_USER, "create"))],
)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    """Create a user account with an explicit role."""
    users: UserService = request.app.state.users
    user = User(
        email=body.email,
        firstname=body.firstname,
        lastname=body.lastname,
        password=hash_password(body.password),
        role=body.role.value,
        active=body.active,
    )
    try:
        users.save(user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that email already exists."},
        ) from exc
    return UserResponse.from_user(user)


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_USER, "read"))],
)
def get_user(request: Request, user_id: int) -> UserResponse:
    return UserResponse.from_user(_get_or_404(request.app.state.users, user_id))


@router.put(
    "/users/{user_id}",
    response_model=UserResponse,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_USER, "update"))],
)
def update_user(
    request: Request,
    user_id: int,
    body: UserUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update a user's profile, password, role or active flag."""
    users: UserService = request.app.state.users
    user = _get_or_404(users, user_id)

    if body.active is False and user.id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
        )

    if body.firstname is not None:
        user.firstname = body.firstname
    if body.lastname is not None:
        user.lastname = body.lastname
    if body.password is not None:
        user.password = hash_password(body.password)
    if body.role is not None:
        user.role = body.role.value
    if body.active is not None:
        user.active = body.active

    users.save(user)
    return UserResponse.from_user(user)


@router.delete(
    "/users/{user_id}",
    status_code=204,
    dependencies=[Depends(auth_service.has_permission(RESOURCE_USER, "delete"))],
)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(get_current_user),
) -> Response:
    users: UserService = request.app.state.users
    user = _get_or_404(users, user_id)
    if user.id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    users.delete(user)
    return Response(status_code=204)
