"""
auth/dependencies.py -- Application-wide auth gate and FastAPI Depends() helpers.

auth_service is the single AuthService the route modules build their
dependencies from. Its default strategy and mode come from settings
(DEFAULT_AUTH_STRATEGY, AUTH_MODE) and are fixed for the process lifetime;
api/main.py calls auth_service.init_strategies() during startup.

get_current_user() returns the identity a preceding is_authorized()
dependency attached to the request. It does not authenticate on its own.

    router = APIRouter(dependencies=[Depends(auth_service.is_authorized())])

    @router.get("/auth/me")
    async def me(user: User = Depends(get_current_user)): ...
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import AuthenticationError
from auth.models import User
from auth.service import AuthService
from core.config import get_settings

_settings = get_settings()

auth_service = AuthService(default_strategy=_settings.default_auth_strategy, mode=_settings.auth_mode)


def get_current_user(request: Request) -> User:
    """Return the authenticated user. Raises HTTP 401 if no gate ran before."""
    user = getattr(request.state, "user", None)
    if user is None:
        raise AuthenticationError()
    return user
