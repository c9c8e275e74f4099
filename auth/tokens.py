"""
auth/tokens.py -- JWT and password hashing utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens carry {"userID": <id>} plus the standard
       aud / iss / iat / exp claims. Verification checks signature, audience,
       issuer and expiry in one call and returns None on any failure -- the
       strategy layer turns that into a 401.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email is registered.

  Secrets and claim values are not read here. TokenOptions is built by the
  AuthService from core.config.get_settings(), which validates SECRET_KEY
  at startup.

Layer rule: no imports from api/, cache/, or milestone/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserService

logger = logging.getLogger("aionic.auth")

_ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenOptions:
    """Signing key and claim values shared by token creation and verification."""

    secret_key: str
    audience: str
    issuer: str
    expire_seconds: int


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt refuses inputs longer than 72 bytes (UTF-8). The API models reject
    such passwords with a 422 before they reach here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("aionic_timing_dummy")


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_token(user_id: int, options: TokenOptions, now: datetime | None = None) -> str:
    """Encode a signed JWT for user_id.

    Args:
        user_id: Numeric user ID, stored as the "userID" claim.
        options: Secret and claim values (audience, issuer, lifetime).
        now:     Issue time. Defaults to the current UTC time; pass a fixed
                 value to get a reproducible token.
    """
    issued = now or datetime.now(timezone.utc)
    payload = {
        "userID": user_id,
        "aud": options.audience,
        "iss": options.issuer,
        "iat": issued,
        "exp": issued + timedelta(seconds=options.expire_seconds),
    }
    return jwt.encode(payload, options.secret_key, algorithm=_ALGORITHM)


def decode_token(token: str, options: TokenOptions) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired tokens, foreign audiences/issuers and bad signatures all land in
    JWTError.
    """
    try:
        payload = jwt.decode(
            token,
            options.secret_key,
            algorithms=[_ALGORITHM],
            audience=options.audience,
            issuer=options.issuer,
        )
    except JWTError as exc:
        logger.debug("Rejected JWT: %s", exc)
        return None
    if not isinstance(payload.get("userID"), int):
        return None
    return payload


# ---------------------------------------------------------------------------
# Credential check (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(users: UserService, email: str, password: str) -> User | None:
    """Check an email/password pair with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the active User on success, None on any failure.
    """
    user = users.get_by_email(email)
    if user is None or user.password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.password):
        return None
    if not user.active:
        return None
    return user
