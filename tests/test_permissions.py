"""Unit tests for auth/permissions.py -- role-based access control.

Covers:
- default grants: admin everything, user read-only except task create/update
- inactive and unknown users are denied
- wildcard resource/action grants
- lookup failures propagate instead of turning into allow/deny
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine

from auth.models import User
from auth.permissions import AccessControl, default_access_control
from auth.store import UserService
from core.database import init_db


@pytest.fixture
def users():
    engine = create_engine("sqlite:///:memory:")
    init_db(engine)
    yield UserService(engine)
    engine.dispose()


@pytest.fixture
def acl(users):
    return default_access_control(users)


def _add(users: UserService, email: str, role: str, active: bool = True) -> int:
    return users.save(User(email=email, role=role, active=active)).id


def test_admin_may_do_anything(users, acl):
    admin_id = _add(users, "admin@aionic.test", "admin")
    assert acl.is_allowed(admin_id, "status", "delete")
    assert acl.is_allowed(admin_id, "user", "create")
    assert acl.is_allowed(admin_id, "anything", "whatever")


@pytest.mark.parametrize(
    ("resource", "action", "expected"),
    [
        ("status", "read", True),
        ("task", "read", True),
        ("user", "read", True),
        ("task", "create", True),
        ("task", "update", True),
        ("task", "delete", False),
        ("status", "create", False),
        ("status", "delete", False),
        ("user", "create", False),
    ],
)
def test_user_role_grants(users, acl, resource, action, expected):
    user_id = _add(users, "member@aionic.test", "user")
    assert acl.is_allowed(user_id, resource, action) is expected


def test_inactive_user_denied(users, acl):
    admin_id = _add(users, "gone@aionic.test", "admin", active=False)
    assert not acl.is_allowed(admin_id, "status", "read")


def test_unknown_user_denied(acl):
    assert not acl.is_allowed(12345, "status", "read")


def test_unknown_role_denied(users, acl):
    guest_id = _add(users, "guest@aionic.test", "guest")
    assert not acl.is_allowed(guest_id, "status", "read")


def test_wildcard_action_on_single_resource(users):
    acl = AccessControl(users)
    acl.allow("editor", "task", "*")
    editor_id = _add(users, "editor@aionic.test", "editor")
    assert acl.is_allowed(editor_id, "task", "delete")
    assert not acl.is_allowed(editor_id, "status", "read")


def test_lookup_failure_propagates():
    users = MagicMock()
    users.get_active.side_effect = RuntimeError("database is gone")
    acl = default_access_control(users)
    with pytest.raises(RuntimeError):
        acl.is_allowed(1, "status", "read")
