"""
auth/policy.py -- Build the role -> permissions policy map from the role store.

resolve() re-reads every role on every call. There is no cache: a role edit
is visible to the very next authorization check. For a low-traffic admin
backend the extra query is cheaper than reasoning about stale grants.

Failure handling: any error while reading the store becomes
PolicyUnavailableError. Callers must treat that as "deny", never as an empty
(and therefore meaningless) policy.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Protocol

from auth.errors import PolicyUnavailableError
from auth.models import Role
from auth.permissions import PolicyMap

logger = logging.getLogger("stockroom.policy")


class RoleSource(Protocol):
    def list_roles(self) -> list[Role]: ...


class PolicyResolver:
    """Fold the role store into a PolicyMap snapshot for one decision."""

    def __init__(self, roles: RoleSource) -> None:
        self._roles = roles

    def resolve(self) -> PolicyMap:
        try:
            roles = self._roles.list_roles()
        except Exception as exc:
            logger.exception("Role store read failed; denying all permission checks")
            raise PolicyUnavailableError("Role policy could not be loaded.") from exc
        return {role.slug: frozenset(role.permissions) for role in roles}
