"""
auth/service.py -- AuthService, the strategy-selecting authentication gate.

Available strategies (AuthStrategy):
  jwt   -- bearer JWT (default)
  basic -- HTTP basic credentials (email:password)

The gate hands out FastAPI dependencies instead of performing checks itself:

    auth = AuthService()                       # default strategy: jwt
    router = APIRouter(dependencies=[Depends(auth.is_authorized())])

    @router.get("/reports", dependencies=[Depends(auth.has_permission("report", "read"))])
    def reports(...): ...

    @router.post("/token", dependencies=[Depends(auth.is_authorized("basic"))])
    def token(...): ...

Pass a strategy to is_authorized() to override the default for a router or a
single endpoint. is_authorized() and has_permission() compose independently;
FastAPI runs router-level dependencies before route-level ones, so a
permission check always sees the identity the authentication step attached to
request.state.user.

Strategy names are resolved when a request arrives, not when the dependency
is built: an unknown name raises UnknownStrategyError inside the request and
surfaces through the application's error handlers as a 500. Neither
mechanism runs in that case.

Bypass mode (AuthMode.bypass) authenticates every request as
mock_test_user() and skips permission checks. It is selected explicitly by
the constructor argument -- never by the absence of credentials.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from fastapi import Request

from auth.errors import AuthenticationError, MissingUserRights, PolicyEvaluationError, UnknownStrategyError
from auth.models import User, mock_test_user
from auth.strategies import BasicAuthStrategy, JwtStrategy, Strategy
from auth.tokens import TokenOptions, create_token
from core.config import AuthMode, Settings, get_settings

logger = logging.getLogger("aionic.auth")


class AuthStrategy(str, Enum):
    jwt = "jwt"
    basic = "basic"


class AuthService:
    def __init__(
        self,
        default_strategy: Union[AuthStrategy, str] = AuthStrategy.jwt,
        mode: AuthMode = AuthMode.real,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.default_strategy = default_strategy
        self.mode = AuthMode(mode)
        self.token_options = TokenOptions(
            secret_key=settings.secret_key,
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            expire_seconds=settings.token_expire_seconds,
        )
        self.jwt_strategy: Strategy = JwtStrategy(self.token_options)
        self.basic_strategy: Strategy = BasicAuthStrategy()
        self._registered: frozenset[AuthStrategy] = frozenset()

    def create_token(self, user_id: int, now: Optional[datetime] = None) -> str:
        """Create a signed JWT for user_id, valid for the configured lifetime (8h)."""
        return create_token(user_id, self.token_options, now=now)

    def init_strategies(self) -> None:
        """Register the jwt and basic strategies. Call once at startup."""
        if self._registered:
            logger.warning("Authentication strategies already registered")
            return
        self._registered = frozenset(AuthStrategy)
        logger.info("Authentication strategies registered: %s", ", ".join(s.value for s in AuthStrategy))

    def is_authorized(self, strategy: Union[AuthStrategy, str, None] = None) -> Callable[[Request], User]:
        """Return a dependency that authenticates the request.

        Uses strategy when given, the gate's default otherwise. The
        authenticated user is attached to request.state.user and returned,
        so handlers may also take it as a dependency value.
        """

        def authenticate(request: Request) -> User:
            if self.mode is AuthMode.bypass:
                user = mock_test_user()
            else:
                user = self._do_authentication(request, strategy or self.default_strategy)
            request.state.user = user
            return user

        return authenticate

    def has_permission(self, resource: str, action: str) -> Callable[[Request], None]:
        """Return a dependency that checks (user, resource, action) against the ACL.

        Reads the policy evaluator from request.app.state.permissions. Denial
        raises MissingUserRights (403). Any error raised by the evaluator is
        wrapped in PolicyEvaluationError (503); it never turns into an allow.
        """

        def check_permission(request: Request) -> None:
            if self.mode is AuthMode.bypass:
                return
            user: Optional[User] = getattr(request.state, "user", None)
            if user is None:
                raise AuthenticationError()

            evaluator = request.app.state.permissions
            try:
                access = evaluator.is_allowed(user.id, resource, action)
            except Exception as exc:
                raise PolicyEvaluationError(resource, action) from exc

            if not access:
                logger.info("Denied %s on %s for user %s", action, resource, user.id)
                raise MissingUserRights(resource, action)

        return check_permission

    def _do_authentication(self, request: Request, strategy: Union[AuthStrategy, str]) -> User:
        try:
            name = AuthStrategy(strategy)
        except ValueError:
            raise UnknownStrategyError(strategy) from None

        if name not in self._registered:
            raise RuntimeError(f"Authentication strategy {name.value!r} is not registered; call init_strategies()")

        if name is AuthStrategy.jwt:
            return self.jwt_strategy.authenticate(request)
        if name is AuthStrategy.basic:
            return self.basic_strategy.authenticate(request)
        raise UnknownStrategyError(strategy)
