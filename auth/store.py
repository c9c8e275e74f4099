"""
auth/store.py -- SQLAlchemy Core persistence for users.

Pattern: Repository + Data Mapper (see components/service.py). The users
table is declared on the shared metadata; _row_to_user / _user_values are
the mappers; UserService is the component service the auth strategies,
the access control list and the user routes all go through.

Security:
  All queries use bound parameters. The password column holds a bcrypt hash
  only -- hashing happens in auth/tokens.py before an entity reaches here.
  email is UNIQUE; a duplicate insert raises sqlalchemy.exc.IntegrityError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Column, Integer, String, Table, Text
from sqlalchemy.engine import Engine

from auth.models import User
from components.service import ComponentService, FindOptions, Repository
from core.database import metadata

if TYPE_CHECKING:
    from cache.store import CacheStore

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("firstname", String(100), nullable=False, server_default=""),
    Column("lastname", String(100), nullable=False, server_default=""),
    Column("password", Text),
    Column("role", String(30), nullable=False, server_default="user"),
    Column("active", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        firstname=row.firstname,
        lastname=row.lastname,
        password=row.password,
        role=row.role,
        active=bool(row.active),
        created_at=row.created_at,
    )


def _user_values(user: User) -> dict:
    if not user.created_at:
        user.created_at = _now_iso()
    return {
        "email": user.email,
        "firstname": user.firstname,
        "lastname": user.lastname,
        "password": user.password,
        "role": user.role,
        "active": 1 if user.active else 0,
        "created_at": user.created_at,
    }


class UserService(ComponentService[User]):
    model = User
    cache_name = "user"
    default_order = {"id": "ASC"}

    def __init__(self, engine: Engine, cache: Optional[CacheStore] = None) -> None:
        super().__init__(Repository(engine, users_table, _row_to_user, _user_values), cache)

    def to_cache(self, entity: User) -> dict:
        # Password hashes stay in the users table only.
        data = super().to_cache(entity)
        data.pop("password", None)
        return data

    def get_active(self, user_id: int) -> User | None:
        """Look up an active user by primary key. None if missing or deactivated."""
        return self.read(FindOptions(where={"id": user_id, "active": 1}))

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact email (case-sensitive), active or not."""
        return self.read(FindOptions(where={"email": email}))

    def has_users(self) -> bool:
        """Return True if at least one user record exists (first-run check)."""
        return self.read(FindOptions(take=1)) is not None
