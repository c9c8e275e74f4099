"""
auth/permissions.py -- Role-based access control list (the policy evaluator).

The auth gate only needs an object with

    is_allowed(user_id, resource, action) -> bool

AccessControl is the implementation wired onto app.state.permissions at
startup. Grants are held in memory per role; the user's role is looked up
through the UserService on every check, so a role change or deactivation
takes effect on the next request. Lookup errors propagate -- the gate turns
them into a 503, never into an allow or a deny.

Wildcards: "*" as a resource or an action matches anything.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from auth.store import UserService

logger = logging.getLogger("aionic.auth")

WILDCARD = "*"

# Resource names used by the route modules.
RESOURCE_USER = "user"
RESOURCE_STATUS = "status"
RESOURCE_TASK = "task"


def _as_set(value: str | Iterable[str]) -> set[str]:
    return {value} if isinstance(value, str) else set(value)


class AccessControl:
    def __init__(self, users: UserService) -> None:
        self._users = users
        self._grants: dict[str, dict[str, set[str]]] = {}

    def allow(self, role: str, resources: str | Iterable[str], actions: str | Iterable[str]) -> None:
        """Grant role the given actions on the given resources (additive)."""
        role_grants = self._grants.setdefault(role, {})
        for resource in _as_set(resources):
            role_grants.setdefault(resource, set()).update(_as_set(actions))

    def role_allows(self, role: str, resource: str, action: str) -> bool:
        role_grants = self._grants.get(role, {})
        for key in (resource, WILDCARD):
            actions = role_grants.get(key, set())
            if action in actions or WILDCARD in actions:
                return True
        return False

    def is_allowed(self, user_id: int, resource: str, action: str) -> bool:
        """Return True if the active user user_id may perform action on resource."""
        user = self._users.get_active(user_id)
        if user is None:
            return False
        return self.role_allows(user.role, resource, action)


def default_access_control(users: UserService) -> AccessControl:
    """Build the ACL used by the application.

    admin -- everything
    user  -- read statuses, tasks and users; create and update tasks
    """
    acl = AccessControl(users)
    acl.allow("admin", WILDCARD, WILDCARD)
    acl.allow("user", [RESOURCE_STATUS, RESOURCE_TASK, RESOURCE_USER], "read")
    acl.allow("user", RESOURCE_TASK, ["create", "update"])
    logger.info("Access control initialized (roles=%s)", sorted(acl._grants))
    return acl
