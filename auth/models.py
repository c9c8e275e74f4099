"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in milestone/models.py -- dataclasses own domain shape; services and routes
do the work.

Layer rule: no imports from api/, cache/, or milestone/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """An account that can authenticate against the API.

    email doubles as the basic-credentials username. password holds the bcrypt
    hash and is never serialized into API responses. id is the identity that
    goes into the JWT payload and into every permission check.

    id is None before the record is written to the database.
    """

    email: str
    firstname: str = ""
    lastname: str = ""
    password: str | None = None  # bcrypt hash
    role: str = "user"  # "admin" | "user"
    active: bool = True
    id: int | None = None
    created_at: str = ""  # ISO 8601, set on insert


def mock_test_user() -> User:
    """Fixed identity injected by the auth gate in bypass mode."""
    return User(
        id=1,
        email="test@aionic.local",
        firstname="Test",
        lastname="User",
        role="admin",
        active=True,
    )
