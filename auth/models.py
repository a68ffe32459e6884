"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; these classes only own domain shape.

RoleRef / UserRef are tagged variants for "id or slug" lookups. The request
boundary decides which one it has (parse_role_ref / parse_user_ref) and the
stores dispatch on the variant type, so nothing below the route layer ever
guesses whether a string is a number.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass
class User:
    """A credential record owned by the user store.

    The core reads hashed_password for verification and role for
    authorization, and writes a new hash on password change. The hash never
    leaves the server: API response models do not carry it.
    """

    username: str
    role: str  # role slug, e.g. "admin", "clerk"
    hashed_password: str = field(default="", repr=False)
    id: int | None = None
    display_name: str | None = None
    created_at: str | None = None
    is_active: bool = True


@dataclass
class Role:
    """A role policy entry: slug (unique) -> permission strings."""

    slug: str
    name: str
    permissions: list[str] = field(default_factory=list)
    id: int | None = None


@dataclass(frozen=True)
class IdentityClaims:
    """The payload carried inside a signed bearer token.

    Rebuilt from the verified payload on every request and never persisted.
    """

    user_id: int
    role: str
    issued_at: int
    expires_at: int
    issuer: str


@dataclass(frozen=True)
class Identity:
    """Who the current request is, as established by the Authentication stage.

    Stored on request.state for the lifetime of one request. Frozen so later
    stages cannot rewrite it.
    """

    user_id: int
    role: str


# ---------------------------------------------------------------------------
# Lookup variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RoleById:
    id: int


@dataclass(frozen=True)
class RoleBySlug:
    slug: str


RoleRef = Union[RoleById, RoleBySlug]


@dataclass(frozen=True)
class UserById:
    id: int


@dataclass(frozen=True)
class UserByUsername:
    username: str


UserRef = Union[UserById, UserByUsername]


def parse_role_ref(raw: str) -> RoleRef:
    """Decide whether a path segment names a role by id or by slug."""
    if raw.isascii() and raw.isdigit():
        return RoleById(int(raw))
    return RoleBySlug(raw)


def parse_user_ref(raw: str) -> UserRef:
    """Decide whether a path segment names a user by id or by username."""
    if raw.isascii() and raw.isdigit():
        return UserById(int(raw))
    return UserByUsername(raw)
