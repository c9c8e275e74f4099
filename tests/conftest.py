"""
tests/conftest.py -- Shared test fixtures for Aionic.

This module provides:
  - make_engine(): isolated named shared-memory SQLite engine with the schema
  - engine: function-scoped engine fixture for unit tests
  - _patch_lifespan(): wires test engine + cache into app.state, bypassing real startup
  - api_client: TestClient with an admin JWT for API integration tests
  - member: a regular (role "user") account created through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync dependencies and handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment variables must be set before any api/auth/core import:
  DEBUG=true            get_settings() auto-generates SECRET_KEY
  AUTH_MODE=real        the gate really verifies credentials
  ALLOWED_HOSTS         TestClient sends Host: testserver
  LOGIN_RATE_LIMIT      keep the shared in-memory limiter out of the way
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("AUTH_MODE", "real")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, setup_state
from auth.dependencies import auth_service
from auth.models import User
from auth.store import UserService
from auth.tokens import hash_password
from cache.store import CacheStore
from core.database import create_db_engine, init_db

ADMIN_EMAIL = "testadmin@aionic.test"
ADMIN_PASSWORD = "testpass123"
MEMBER_EMAIL = "member@aionic.test"
MEMBER_PASSWORD = "memberpass123"


def make_engine(name: str | None = None) -> Engine:
    """Create a named shared-memory SQLite engine with every table created."""
    name = name or uuid.uuid4().hex
    engine = create_db_engine(f"sqlite:///file:test_{name}?mode=memory&cache=shared&uri=true")
    init_db(engine)
    return engine


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = make_engine()
    yield eng
    eng.dispose()


def _patch_lifespan(engine: Engine, cache: CacheStore):
    """Return an async context manager that replaces the real lifespan.

    Uses the same setup_state() as production so services and the ACL are
    wired identically, but on the isolated test engine and cache. No purge
    task is started.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        setup_state(app, engine, cache)
        auth_service.init_strategies()
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The admin user is created before the client starts and its JWT is issued
    by the application's own auth gate.
    """
    engine = make_engine(request.module.__name__.replace(".", "_"))
    cache = CacheStore()

    admin = UserService(engine).save(
        User(
            email=ADMIN_EMAIL,
            firstname="Test",
            lastname="Admin",
            password=hash_password(ADMIN_PASSWORD),
            role="admin",
        )
    )
    token = auth_service.create_token(admin.id)

    app.router.lifespan_context = _patch_lifespan(engine, cache)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin.id

    cache.close()
    engine.dispose()


@pytest.fixture(scope="module")
def member(api_client) -> tuple[str, int]:
    """Create a role "user" account through the API. Returns (token, user_id)."""
    client, token, _uid = api_client
    resp = client.post(
        "/api/v1/users",
        json={"email": MEMBER_EMAIL, "password": MEMBER_PASSWORD, "firstname": "Mem", "role": "user"},
        headers={"Authorization": f"Bearer {token}"},
    )
    assert resp.status_code == 201, resp.text
    user_id = resp.json()["id"]
    return auth_service.create_token(user_id), user_id
