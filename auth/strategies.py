"""
auth/strategies.py -- Credential verification mechanisms used by the auth gate.

Both strategies expose the same operation:

    authenticate(request) -> User      # raises AuthenticationError

JwtStrategy    Authorization: Bearer <jwt>. Signature, audience, issuer and
               expiry are checked by python-jose; the "userID" claim must
               name an active user.
BasicAuthStrategy
               Authorization: Basic base64(email:password). The password is
               checked with bcrypt through authenticate_user(), which keeps
               timing equal for unknown emails.

Header parsing uses fastapi.security.utils.get_authorization_scheme_param,
the same helper FastAPI's own HTTPBearer/HTTPBasic schemes use. Users are
loaded through the UserService on request.app.state.users.
"""

from __future__ import annotations

from base64 import b64decode
from typing import Protocol, runtime_checkable

from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param

from auth.errors import AuthenticationError
from auth.models import User
from auth.store import UserService
from auth.tokens import TokenOptions, authenticate_user, decode_token


@runtime_checkable
class Strategy(Protocol):
    def authenticate(self, request: Request) -> User: ...


class JwtStrategy:
    """Verify a bearer JWT and resolve the user it was issued to."""

    scheme = "Bearer"

    def __init__(self, options: TokenOptions) -> None:
        self.options = options

    def authenticate(self, request: Request) -> User:
        scheme, token = get_authorization_scheme_param(request.headers.get("Authorization"))
        if scheme.lower() != "bearer" or not token:
            raise AuthenticationError("Bearer token required.", scheme=self.scheme)

        payload = decode_token(token, self.options)
        if payload is None:
            raise AuthenticationError("Invalid or expired token.", scheme=self.scheme)

        users: UserService = request.app.state.users
        user = users.get_active(payload["userID"])
        if user is None:
            raise AuthenticationError("Invalid or expired token.", scheme=self.scheme)
        return user


class BasicAuthStrategy:
    """Verify an email/password pair sent as HTTP basic credentials."""

    scheme = 'Basic realm="aionic"'

    def authenticate(self, request: Request) -> User:
        scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
        if scheme.lower() != "basic" or not param:
            raise AuthenticationError("Basic credentials required.", scheme=self.scheme)

        try:
            decoded = b64decode(param, validate=True).decode("utf-8")
        except ValueError:
            # binascii.Error, UnicodeDecodeError and non-ASCII input are all ValueErrors.
            raise AuthenticationError("Malformed basic credentials.", scheme=self.scheme) from None
        email, separator, password = decoded.partition(":")
        if not separator or not email:
            raise AuthenticationError("Malformed basic credentials.", scheme=self.scheme)

        users: UserService = request.app.state.users
        user = authenticate_user(users, email, password)
        if user is None:
            raise AuthenticationError("Invalid email or password.", scheme=self.scheme)
        return user
