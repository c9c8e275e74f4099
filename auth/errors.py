"""
auth/errors.py -- Exceptions raised by the auth gate and their HTTP handlers.

Failure taxonomy:
  AuthenticationError   missing/malformed/expired credential      -> 401
  MissingUserRights     authenticated, but the policy says no      -> 403
  UnknownStrategyError  strategy name outside AuthStrategy         -> 500
  PolicyEvaluationError the access control check itself blew up    -> 503

401 is an HTTPException and goes through the application's generic
HTTPException handler (structured {"error": {...}} envelope). The 403 body is
a fixed contract, {"error": "Missing user rights", "status": 403}, so it gets
its own handler. UnknownStrategyError is a configuration bug and is left to
the catch-all handler. PolicyEvaluationError is kept apart from internal
errors so clients and monitoring can tell "policy engine unavailable" from
"server bug".

register_auth_error_handlers(app) wires the handlers onto a FastAPI app.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("aionic.auth")


class AuthenticationError(HTTPException):
    def __init__(self, message: str = "Authentication required.", scheme: str = "Bearer") -> None:
        super().__init__(
            status_code=401,
            detail={"code": "unauthorized", "message": message},
            headers={"WWW-Authenticate": scheme},
        )


class MissingUserRights(Exception):
    def __init__(self, resource: str, action: str) -> None:
        super().__init__(f"Missing user rights for {action} on {resource}")
        self.resource = resource
        self.action = action


class UnknownStrategyError(ValueError):
    def __init__(self, strategy: object) -> None:
        super().__init__(f"Unknown authentication strategy: {strategy!r}")
        self.strategy = strategy


class PolicyEvaluationError(Exception):
    def __init__(self, resource: str, action: str) -> None:
        super().__init__(f"Permission check failed for {action} on {resource}")
        self.resource = resource
        self.action = action


async def missing_user_rights_handler(request: Request, exc: MissingUserRights) -> JSONResponse:
    return JSONResponse(
        status_code=403,
        content={"error": "Missing user rights", "status": 403},
    )


async def policy_evaluation_handler(request: Request, exc: PolicyEvaluationError) -> JSONResponse:
    """Return 503 when the access control check could not be evaluated.

    The underlying exception is logged with its traceback; the response only
    says the policy engine is unavailable.
    """
    logger.error("%s (%s %s)", exc, request.method, request.url.path, exc_info=exc.__cause__)
    return JSONResponse(
        status_code=503,
        content={
            "error": {
                "code": "policy_unavailable",
                "message": "Permission check could not be completed.",
                "detail": None,
            }
        },
    )


def register_auth_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MissingUserRights, missing_user_rights_handler)
    app.add_exception_handler(PolicyEvaluationError, policy_evaluation_handler)
