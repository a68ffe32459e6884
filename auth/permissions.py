"""
auth/permissions.py -- Permission catalogue and the authorization decision.

A permission is "resource:action" (e.g. "inventory:delete"). The only
wildcard is "resource:*", meaning every action on that resource. There is no
global "*" and no action-only wildcard; such strings are plain literals that
only ever match themselves.

is_authorized() is the whole decision: a pure function over (role slug,
policy map, required permission). No I/O, no logging, no state -- safe to call
from any thread and easy to test exhaustively.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

# Resource wildcards
INVENTORY_ADMIN = "inventory:*"
ORDER_ADMIN = "order:*"
PRODUCT_ADMIN = "product:*"
USER_ADMIN = "user:*"
ROLE_ADMIN = "role:*"

# Inventory
PERM_INVENTORY_CREATE = "inventory:create"
PERM_INVENTORY_READ = "inventory:read"
PERM_INVENTORY_UPDATE = "inventory:update"
PERM_INVENTORY_DELETE = "inventory:delete"

# Order
PERM_ORDER_CREATE = "order:create"
PERM_ORDER_READ = "order:read"
PERM_ORDER_UPDATE = "order:update"
PERM_ORDER_DELETE = "order:delete"

# Product
PERM_PRODUCT_CREATE = "product:create"
PERM_PRODUCT_READ = "product:read"
PERM_PRODUCT_UPDATE = "product:update"
PERM_PRODUCT_DELETE = "product:delete"

# User
PERM_USER_CREATE = "user:create"
PERM_USER_READ = "user:read"
PERM_USER_UPDATE = "user:update"
PERM_USER_DELETE = "user:delete"

# Role
PERM_ROLE_CREATE = "role:create"
PERM_ROLE_READ = "role:read"
PERM_ROLE_UPDATE = "role:update"
PERM_ROLE_DELETE = "role:delete"

RESOURCES = ("inventory", "order", "product", "user", "role")
ACTIONS = ("create", "read", "update", "delete")

_VALID_PERMISSIONS: frozenset[str] = frozenset(f"{r}:{a}" for r in RESOURCES for a in ACTIONS)
_VALID_WILDCARDS: frozenset[str] = frozenset(f"{r}:*" for r in RESOURCES)

PolicyMap = Mapping[str, frozenset[str]]


def all_permissions() -> list[str]:
    """Return every concrete permission string, sorted. Wildcards excluded."""
    return sorted(_VALID_PERMISSIONS)


def is_valid_permission(perm: str) -> bool:
    """True for catalogue permissions and wildcards over known resources.

    Used when a role is written. The decision function itself does not care:
    unknown strings there are just literals that match nothing else.
    """
    return perm in _VALID_PERMISSIONS or perm in _VALID_WILDCARDS


def has_permission(granted: Iterable[str], required: str) -> bool:
    """Return True if any granted permission covers the required one.

    "inventory:*" covers "inventory:delete" but not "inventoryextra:delete":
    the resource prefix must be followed by a literal colon.
    """
    for perm in granted:
        if perm == required:
            return True
        if perm.endswith(":*"):
            resource = perm[:-2]
            if resource and required.startswith(resource + ":"):
                return True
    return False


def is_authorized(role: str, policy: PolicyMap, required: str) -> bool:
    """Decide whether a role may exercise a permission under a policy map.

    Deny by default: a role missing from the policy gets nothing, and an
    empty permission set grants nothing.
    """
    granted = policy.get(role)
    if granted is None:
        return False
    return has_permission(granted, required)
