"""
tests/test_auth_service.py -- Unit tests for the strategy-selecting auth gate.

Each test builds a minimal FastAPI app around an AuthService so the gate's
dependencies run through real FastAPI dependency resolution, with a real
UserService on an isolated shared-memory database.

Covers:
  - jwt: valid token accepted until 8h after issue, rejected afterwards
  - jwt/basic: absent, malformed or wrong credentials rejected
  - default strategy selection (constructor argument)
  - bypass mode injects the mock user regardless of credentials
  - unknown strategy -> error path, neither mechanism executed
  - has_permission: denial -> exact 403 body, allow -> untouched response,
    evaluator failure -> 503, missing identity -> 401
  - create_token claims and determinism
"""

from __future__ import annotations

from base64 import b64encode
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from jose import jwt

from auth.dependencies import get_current_user
from auth.errors import register_auth_error_handlers
from auth.models import User
from auth.service import AuthService, AuthStrategy
from auth.store import UserService
from auth.strategies import Strategy
from auth.tokens import TokenOptions, create_token, hash_password
from core.config import AuthMode

EMAIL = "alice@aionic.test"
PASSWORD = "correct-horse"


class FakeEvaluator:
    """Policy evaluator stub that records every question it is asked."""

    def __init__(self, allowed: bool = True, error: Exception | None = None) -> None:
        self.allowed = allowed
        self.error = error
        self.calls: list[tuple[int, str, str]] = []

    def is_allowed(self, user_id: int, resource: str, action: str) -> bool:
        self.calls.append((user_id, resource, action))
        if self.error is not None:
            raise self.error
        return self.allowed


@pytest.fixture
def users(engine) -> UserService:
    return UserService(engine)


@pytest.fixture
def alice(users) -> User:
    return users.save(User(email=EMAIL, firstname="Alice", password=hash_password(PASSWORD), role="user"))


def _make_app(gate: AuthService, users: UserService, evaluator: FakeEvaluator | None = None) -> FastAPI:
    app = FastAPI()
    register_auth_error_handlers(app)
    app.state.users = users
    app.state.permissions = evaluator or FakeEvaluator()

    @app.get("/default", dependencies=[Depends(gate.is_authorized())])
    def default_route(user: User = Depends(get_current_user)):
        return {"user_id": user.id, "email": user.email}

    @app.get("/jwt", dependencies=[Depends(gate.is_authorized(AuthStrategy.jwt))])
    def jwt_route(user: User = Depends(get_current_user)):
        return {"user_id": user.id}

    @app.get("/basic", dependencies=[Depends(gate.is_authorized("basic"))])
    def basic_route(user: User = Depends(get_current_user)):
        return {"user_id": user.id}

    @app.get("/unknown", dependencies=[Depends(gate.is_authorized("oauth"))])
    def unknown_route():
        return {"ok": True}

    @app.get(
        "/guarded",
        dependencies=[Depends(gate.is_authorized()), Depends(gate.has_permission("status", "delete"))],
    )
    def guarded_route():
        return {"done": True}

    @app.get("/permission-only", dependencies=[Depends(gate.has_permission("status", "read"))])
    def permission_only_route():
        return {"done": True}

    return app


def _gate(**kwargs) -> AuthService:
    gate = AuthService(**kwargs)
    gate.init_strategies()
    return gate


def _basic(email: str, password: str) -> dict[str, str]:
    raw = b64encode(f"{email}:{password}".encode()).decode()
    return {"Authorization": f"Basic {raw}"}


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Token creation
# ---------------------------------------------------------------------------


class TestCreateToken:
    def test_token_claims(self) -> None:
        gate = AuthService()
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        token = gate.create_token(42, now=now)
        claims = jwt.get_unverified_claims(token)
        assert claims["userID"] == 42
        assert claims["aud"] == "aionic-client"
        assert claims["iss"] == "aionic-core"
        assert claims["exp"] - claims["iat"] == 8 * 60 * 60

    def test_token_is_deterministic_for_fixed_time(self) -> None:
        gate = AuthService()
        now = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert gate.create_token(7, now=now) == gate.create_token(7, now=now)
        assert gate.create_token(7, now=now) != gate.create_token(8, now=now)


# ---------------------------------------------------------------------------
# JWT strategy
# ---------------------------------------------------------------------------


class TestJwtStrategy:
    def test_fresh_token_accepted(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        resp = client.get("/jwt", headers=_bearer(gate.create_token(alice.id)))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": alice.id}

    def test_token_accepted_just_before_expiry(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        issued = datetime.now(timezone.utc) - timedelta(hours=7, minutes=59)
        resp = client.get("/jwt", headers=_bearer(gate.create_token(alice.id, now=issued)))
        assert resp.status_code == 200

    def test_token_rejected_after_eight_hours(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        issued = datetime.now(timezone.utc) - timedelta(hours=8, minutes=1)
        resp = client.get("/jwt", headers=_bearer(gate.create_token(alice.id, now=issued)))
        assert resp.status_code == 401

    def test_missing_header_rejected(self, users, alice) -> None:
        client = TestClient(_make_app(_gate(), users))
        resp = client.get("/jwt")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"

    @pytest.mark.parametrize("header", ["Bearer", "Bearer not-a-jwt", "Token abc.def.ghi", "Basic Zm9vOmJhcg=="])
    def test_malformed_credentials_rejected(self, users, alice, header: str) -> None:
        client = TestClient(_make_app(_gate(), users))
        resp = client.get("/jwt", headers={"Authorization": header})
        assert resp.status_code == 401

    def test_token_from_other_issuer_rejected(self, users, alice) -> None:
        gate = _gate()
        foreign = TokenOptions(
            secret_key=gate.token_options.secret_key,
            audience="aionic-client",
            issuer="someone-else",
            expire_seconds=3600,
        )
        client = TestClient(_make_app(gate, users))
        resp = client.get("/jwt", headers=_bearer(create_token(alice.id, foreign)))
        assert resp.status_code == 401

    def test_token_for_deactivated_user_rejected(self, users, alice) -> None:
        gate = _gate()
        token = gate.create_token(alice.id)
        alice.active = False
        users.save(alice)
        client = TestClient(_make_app(gate, users))
        assert client.get("/jwt", headers=_bearer(token)).status_code == 401

    def test_token_for_unknown_user_rejected(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        assert client.get("/jwt", headers=_bearer(gate.create_token(99999))).status_code == 401


# ---------------------------------------------------------------------------
# Basic strategy
# ---------------------------------------------------------------------------


class TestBasicStrategy:
    def test_valid_credentials_accepted(self, users, alice) -> None:
        client = TestClient(_make_app(_gate(), users))
        resp = client.get("/basic", headers=_basic(EMAIL, PASSWORD))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": alice.id}

    def test_wrong_password_rejected(self, users, alice) -> None:
        client = TestClient(_make_app(_gate(), users))
        resp = client.get("/basic", headers=_basic(EMAIL, "wrong"))
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"].startswith("Basic")

    def test_unknown_email_rejected(self, users, alice) -> None:
        client = TestClient(_make_app(_gate(), users))
        assert client.get("/basic", headers=_basic("nobody@aionic.test", PASSWORD)).status_code == 401

    @pytest.mark.parametrize(
        "header",
        [
            None,
            "Basic",
            "Basic !!!not-base64!!!",
            "Basic " + b64encode(b"no-separator").decode(),
            # Header values travel as latin-1; non-ASCII is not valid base64.
            "Basic éééé".encode("latin-1"),
        ],
    )
    def test_absent_or_malformed_credentials_rejected(self, users, alice, header: str | bytes | None) -> None:
        client = TestClient(_make_app(_gate(), users))
        headers = {"Authorization": header} if header else {}
        resp = client.get("/basic", headers=headers)
        assert resp.status_code == 401
        assert resp.headers["WWW-Authenticate"].startswith("Basic")

    def test_bearer_token_not_accepted_by_basic(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        assert client.get("/basic", headers=_bearer(gate.create_token(alice.id))).status_code == 401

    def test_deactivated_user_rejected(self, users, alice) -> None:
        alice.active = False
        users.save(alice)
        client = TestClient(_make_app(_gate(), users))
        assert client.get("/basic", headers=_basic(EMAIL, PASSWORD)).status_code == 401


# ---------------------------------------------------------------------------
# Strategy selection
# ---------------------------------------------------------------------------


class TestStrategySelection:
    def test_both_mechanisms_share_the_strategy_interface(self) -> None:
        gate = _gate()
        assert isinstance(gate.jwt_strategy, Strategy)
        assert isinstance(gate.basic_strategy, Strategy)

    def test_default_strategy_is_jwt(self, users, alice) -> None:
        gate = _gate()
        client = TestClient(_make_app(gate, users))
        assert client.get("/default", headers=_bearer(gate.create_token(alice.id))).status_code == 200
        assert client.get("/default", headers=_basic(EMAIL, PASSWORD)).status_code == 401

    def test_configured_default_strategy_is_used(self, users, alice) -> None:
        gate = _gate(default_strategy="basic")
        client = TestClient(_make_app(gate, users))
        assert client.get("/default", headers=_basic(EMAIL, PASSWORD)).status_code == 200
        assert client.get("/default", headers=_bearer(gate.create_token(alice.id))).status_code == 401

    def test_unknown_strategy_goes_to_error_path(self, users, alice) -> None:
        gate = _gate()
        gate.jwt_strategy = MagicMock()
        gate.basic_strategy = MagicMock()
        client = TestClient(_make_app(gate, users), raise_server_exceptions=False)

        resp = client.get("/unknown", headers=_bearer("anything"))

        assert resp.status_code == 500
        gate.jwt_strategy.authenticate.assert_not_called()
        gate.basic_strategy.authenticate.assert_not_called()

    def test_unknown_default_strategy_goes_to_error_path(self, users, alice) -> None:
        gate = _gate(default_strategy="kerberos")
        gate.jwt_strategy = MagicMock()
        gate.basic_strategy = MagicMock()
        client = TestClient(_make_app(gate, users), raise_server_exceptions=False)

        assert client.get("/default", headers=_basic(EMAIL, PASSWORD)).status_code == 500
        gate.jwt_strategy.authenticate.assert_not_called()
        gate.basic_strategy.authenticate.assert_not_called()

    def test_unknown_strategy_not_rejected_when_building_dependency(self) -> None:
        dependency = AuthService().is_authorized("oauth")
        assert callable(dependency)

    def test_dispatch_before_init_strategies_fails(self, users, alice) -> None:
        gate = AuthService()
        client = TestClient(_make_app(gate, users), raise_server_exceptions=False)
        assert client.get("/jwt", headers=_bearer(gate.create_token(alice.id))).status_code == 500

    def test_init_strategies_twice_is_harmless(self, users, alice) -> None:
        gate = _gate()
        gate.init_strategies()
        client = TestClient(_make_app(gate, users))
        assert client.get("/jwt", headers=_bearer(gate.create_token(alice.id))).status_code == 200


# ---------------------------------------------------------------------------
# Bypass mode
# ---------------------------------------------------------------------------


class TestBypassMode:
    def test_no_credentials_authenticates_as_mock_user(self, users) -> None:
        client = TestClient(_make_app(_gate(mode=AuthMode.bypass), users))
        resp = client.get("/default")
        assert resp.status_code == 200
        assert resp.json() == {"user_id": 1, "email": "test@aionic.local"}

    def test_supplied_credentials_are_ignored(self, users, alice) -> None:
        client = TestClient(_make_app(_gate(mode=AuthMode.bypass), users))
        resp = client.get("/basic", headers=_basic(EMAIL, "wrong"))
        assert resp.status_code == 200
        assert resp.json() == {"user_id": 1}

    def test_permission_check_skipped(self, users) -> None:
        evaluator = FakeEvaluator(allowed=False)
        client = TestClient(_make_app(_gate(mode=AuthMode.bypass), users, evaluator))
        assert client.get("/guarded").status_code == 200
        assert evaluator.calls == []

    def test_real_mode_does_not_bypass_without_credentials(self, users) -> None:
        client = TestClient(_make_app(_gate(mode=AuthMode.real), users))
        assert client.get("/default").status_code == 401


# ---------------------------------------------------------------------------
# Permission checks
# ---------------------------------------------------------------------------


class TestHasPermission:
    def test_denied_returns_exact_403_body(self, users, alice) -> None:
        gate = _gate()
        evaluator = FakeEvaluator(allowed=False)
        client = TestClient(_make_app(gate, users, evaluator))

        resp = client.get("/guarded", headers=_bearer(gate.create_token(alice.id)))

        assert resp.status_code == 403
        assert resp.json() == {"error": "Missing user rights", "status": 403}
        assert evaluator.calls == [(alice.id, "status", "delete")]

    def test_allowed_continues_with_untouched_response(self, users, alice) -> None:
        gate = _gate()
        evaluator = FakeEvaluator(allowed=True)
        client = TestClient(_make_app(gate, users, evaluator))

        resp = client.get("/guarded", headers=_bearer(gate.create_token(alice.id)))

        assert resp.status_code == 200
        assert resp.json() == {"done": True}
        assert evaluator.calls == [(alice.id, "status", "delete")]

    def test_evaluator_failure_is_reported_as_503(self, users, alice) -> None:
        gate = _gate()
        evaluator = FakeEvaluator(error=RuntimeError("acl backend down"))
        client = TestClient(_make_app(gate, users, evaluator))

        resp = client.get("/guarded", headers=_bearer(gate.create_token(alice.id)))

        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "policy_unavailable"

    def test_authentication_failure_skips_evaluator(self, users, alice) -> None:
        evaluator = FakeEvaluator(allowed=True)
        client = TestClient(_make_app(_gate(), users, evaluator))
        assert client.get("/guarded").status_code == 401
        assert evaluator.calls == []

    def test_missing_identity_is_an_authentication_failure(self, users) -> None:
        evaluator = FakeEvaluator(allowed=True)
        client = TestClient(_make_app(_gate(), users, evaluator))
        assert client.get("/permission-only").status_code == 401
        assert evaluator.calls == []
