"""
API request and response models for Stockroom REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

No response model carries a password hash. UserResponse.from_user() is the
only place a User becomes JSON.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import Role, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SLUG_PATTERN = r"^[a-z0-9][a-z0-9_-]*$"


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)


class UserSummary(BaseModel):
    """The identity part of a login response."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    display_name: Optional[str] = None
    role: str


class LoginResponse(BaseModel):
    """Response for a successful login."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserSummary


class PasswordChange(BaseModel):
    """Request body for POST /api/v1/auth/password (self-service)."""

    current_password: str = Field(min_length=1, max_length=255)
    new_password: str = Field(max_length=255)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /api/v1/users.

    The password length policy is enforced by auth.passwords.hash_password,
    not here, so the API and the CLI reject weak passwords the same way.
    """

    username: str = Field(min_length=1, max_length=255)
    password: str = Field(max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=255)
    role: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)


class PasswordReset(BaseModel):
    """Request body for PATCH /api/v1/users/{id}/password."""

    password: str = Field(max_length=255)


class ActiveToggle(BaseModel):
    """Request body for PATCH /api/v1/users/{id}/active."""

    active: bool


class RoleAssign(BaseModel):
    """Request body for PATCH /api/v1/users/{id}/role."""

    role: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)


class UserResponse(BaseModel):
    """A user as returned by the API. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    display_name: Optional[str]
    role: str
    is_active: bool
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at or "",
        )


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class RoleCreate(BaseModel):
    """Request body for POST /api/v1/roles."""

    model_config = ConfigDict(str_strip_whitespace=True)

    slug: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    permissions: list[str] = Field(default_factory=list, max_length=100)


class RoleUpdate(BaseModel):
    """Request body for PUT /api/v1/roles/{id}. permissions=None keeps the stored list."""

    model_config = ConfigDict(str_strip_whitespace=True)

    slug: str = Field(min_length=1, max_length=64, pattern=SLUG_PATTERN)
    name: str = Field(min_length=1, max_length=255)
    permissions: Optional[list[str]] = Field(default=None, max_length=100)


class PermissionGrant(BaseModel):
    """Request body for POST /api/v1/roles/{id}/permissions."""

    model_config = ConfigDict(str_strip_whitespace=True)

    permission: str = Field(min_length=1, max_length=64)


class RoleResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    slug: str
    name: str
    permissions: list[str]

    @classmethod
    def from_role(cls, role: Role) -> "RoleResponse":
        return cls(id=role.id, slug=role.slug, name=role.name, permissions=list(role.permissions))


class StatusResponse(BaseModel):
    """Acknowledgement for writes that do not return the resource."""

    model_config = ConfigDict(frozen=True)

    status: str


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
