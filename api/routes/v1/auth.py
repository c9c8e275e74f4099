"""
api/routes/v1/auth.py -- Authentication endpoints.

Routes:
  POST /api/v1/auth/login     -- email/password JSON body -> JWT
  POST /api/v1/auth/register  -- self-registration (when enabled)
  POST /api/v1/auth/token     -- HTTP basic credentials -> JWT
  GET  /api/v1/auth/me        -- current user info (jwt)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.limiter import limiter
from api.models import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from auth.dependencies import auth_service, get_current_user
from auth.models import User
from auth.service import AuthStrategy
from auth.store import UserService
from auth.tokens import authenticate_user, hash_password
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /api/v1/auth/login:     public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/register:  public -- gated by SELF_REGISTRATION_ENABLED
# - POST /api/v1/auth/token:     basic strategy
# - GET  /api/v1/auth/me:        default strategy (jwt)
router = APIRouter()


def _token_response(user: User) -> JSONResponse:
    token = auth_service.create_token(user.id)
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=auth_service.token_options.expire_seconds,
            user_id=user.id,
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a JWT.

    Returns the same generic error for unknown email and wrong password
    ("bad_credentials") so the response does not reveal which accounts exist.
    """
    users: UserService = request.app.state.users
    user = authenticate_user(users, body.email, body.password)
    if user is None:
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp
    return _token_response(user)


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create a regular user account without prior authentication."""
    if not _settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    users: UserService = request.app.state.users
    user = User(
        email=body.email,
        firstname=body.firstname,
        lastname=body.lastname,
        password=hash_password(body.password),
        role="user",
    )
    try:
        users.save(user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that email already exists."},
        ) from exc
    return UserResponse.from_user(user)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/auth/token",
    response_model=TokenResponse,
    dependencies=[Depends(auth_service.is_authorized(AuthStrategy.basic))],
)
def issue_token(current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Exchange HTTP basic credentials for a JWT (scripts, CLI clients)."""
    return _token_response(current_user)


@router.get("/auth/me", response_model=UserResponse, dependencies=[Depends(auth_service.is_authorized())])
async def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)
