"""
api/routes/v1/users.py -- Credential record management.

Routes:
  POST   /api/v1/users                      -- create user (user:create)
  GET    /api/v1/users                      -- list users (user:read)
  GET    /api/v1/users/{ref}                -- one user by id or username (user:read)
  PATCH  /api/v1/users/{user_id}/password   -- set a new password (user:update)
  PATCH  /api/v1/users/{user_id}/active     -- enable / disable (user:update)
  PATCH  /api/v1/users/{user_id}/role       -- assign a role (user:update)
  DELETE /api/v1/users/{user_id}            -- delete user (user:delete)

Passwords go through auth.passwords.hash_password, so the length policy is
the same here as in the CLI. Responses never carry the hash.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import ActiveToggle, PasswordReset, RoleAssign, StatusResponse, UserCreate, UserResponse
from auth.dependencies import require_permission
from auth.errors import WeakInputError
from auth.models import User, parse_user_ref
from auth.passwords import hash_password
from auth.permissions import PERM_USER_CREATE, PERM_USER_DELETE, PERM_USER_READ, PERM_USER_UPDATE
from auth.store import UserStore

router = APIRouter()


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _hash_or_400(password: str) -> str:
    try:
        return hash_password(password)
    except WeakInputError as exc:
        raise HTTPException(status_code=400, detail={"code": "weak_password", "message": str(exc)}) from exc


def _require_known_role(request: Request, slug: str) -> None:
    if request.app.state.role_store.get_by_slug(slug) is None:
        raise HTTPException(
            status_code=400,
            detail={"code": "unknown_role", "message": f"Role {slug!r} does not exist."},
        )


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "User not found."})


@router.post(
    "/users",
    response_model=UserResponse,
    status_code=201,
    dependencies=[Depends(require_permission(PERM_USER_CREATE))],
)
def create_user(request: Request, body: UserCreate) -> UserResponse:
    store = _store(request)
    _require_known_role(request, body.role)
    new_user = User(
        username=body.username,
        display_name=body.display_name,
        role=body.role,
        hashed_password=_hash_or_400(body.password),
    )
    try:
        user_id = store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username already exists."},
        ) from exc
    return UserResponse.from_user(store.get_by_id(user_id))


@router.get("/users", response_model=list[UserResponse], dependencies=[Depends(require_permission(PERM_USER_READ))])
def list_users(request: Request, role: Optional[str] = None, active: Optional[bool] = None) -> list[UserResponse]:
    return [UserResponse.from_user(u) for u in _store(request).list_users(role=role, active=active)]


@router.get("/users/{ref}", response_model=UserResponse, dependencies=[Depends(require_permission(PERM_USER_READ))])
def get_user(request: Request, ref: str) -> UserResponse:
    """Fetch a user by numeric id or by username."""
    user = _store(request).get(parse_user_ref(ref))
    if user is None:
        raise _not_found()
    return UserResponse.from_user(user)


@router.patch(
    "/users/{user_id}/password",
    response_model=StatusResponse,
    dependencies=[Depends(require_permission(PERM_USER_UPDATE))],
)
def reset_password(request: Request, user_id: int, body: PasswordReset) -> StatusResponse:
    new_hash = _hash_or_400(body.password)
    if not _store(request).update_password(user_id, new_hash):
        raise _not_found()
    return StatusResponse(status="password updated")


@router.patch("/users/{user_id}/active", response_model=UserResponse)
def set_active(
    request: Request,
    user_id: int,
    body: ActiveToggle,
    current_user: User = Depends(require_permission(PERM_USER_UPDATE)),
) -> UserResponse:
    """Enable or disable an account. Disabled users fail login and authorization."""
    if not body.active and user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deactivation", "message": "You cannot deactivate your own account."},
        )
    store = _store(request)
    if not store.set_active(user_id, body.active):
        raise _not_found()
    return UserResponse.from_user(store.get_by_id(user_id))


@router.patch(
    "/users/{user_id}/role",
    response_model=UserResponse,
    dependencies=[Depends(require_permission(PERM_USER_UPDATE))],
)
def assign_role(request: Request, user_id: int, body: RoleAssign) -> UserResponse:
    """Move a user to another role. Takes effect on their next request."""
    _require_known_role(request, body.role)
    store = _store(request)
    if not store.update_role(user_id, body.role):
        raise _not_found()
    return UserResponse.from_user(store.get_by_id(user_id))


@router.delete("/users/{user_id}", status_code=204)
def delete_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(require_permission(PERM_USER_DELETE)),
) -> Response:
    if user_id == current_user.id:
        raise HTTPException(
            status_code=400,
            detail={"code": "self_deletion", "message": "You cannot delete your own account."},
        )
    if not _store(request).delete_user(user_id):
        raise _not_found()
    return Response(status_code=204)
