"""
api/routes/v1/roles.py -- Role and permission management (the policy source).

Routes:
  GET    /api/v1/permissions                          -- permission catalogue (role:read)
  POST   /api/v1/roles                                -- create role (role:create)
  GET    /api/v1/roles                                -- list roles (role:read)
  GET    /api/v1/roles/{ref}                          -- one role by id or slug (role:read)
  PUT    /api/v1/roles/{role_id}                      -- rewrite slug/name/permissions (role:update)
  DELETE /api/v1/roles/{role_id}                      -- delete role (role:delete)
  PUT    /api/v1/roles/{role_id}/permissions          -- replace permission list (role:update)
  POST   /api/v1/roles/{role_id}/permissions          -- grant one permission (role:update)
  DELETE /api/v1/roles/{role_id}/permissions/{perm}   -- revoke one permission (role:update)

Authentication is applied at include time (api/main.py); every route here
declares its own required permission. Edits are visible to the next
authorization check because the policy map is rebuilt per request.
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response
from sqlalchemy.exc import IntegrityError

from api.models import PermissionGrant, RoleCreate, RoleResponse, RoleUpdate, StatusResponse
from auth.dependencies import require_permission
from auth.models import Role, parse_role_ref
from auth.permissions import (
    PERM_ROLE_CREATE,
    PERM_ROLE_DELETE,
    PERM_ROLE_READ,
    PERM_ROLE_UPDATE,
    all_permissions,
    is_valid_permission,
)
from auth.store import RoleStore

router = APIRouter()


def _store(request: Request) -> RoleStore:
    return request.app.state.role_store


def _check_permissions(permissions: list[str]) -> list[str]:
    invalid = [p for p in permissions if not is_valid_permission(p)]
    if invalid:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_permission", "message": f"Unknown permissions: {', '.join(invalid)}"},
        )
    return permissions


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Role not found."})


def _conflict() -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"code": "conflict", "message": "A role with that slug already exists."},
    )


@router.get("/permissions", response_model=list[str], dependencies=[Depends(require_permission(PERM_ROLE_READ))])
def list_permissions() -> list[str]:
    """Return every concrete permission a role can be granted."""
    return all_permissions()


@router.post(
    "/roles",
    response_model=RoleResponse,
    status_code=201,
    dependencies=[Depends(require_permission(PERM_ROLE_CREATE))],
)
def create_role(request: Request, body: RoleCreate) -> RoleResponse:
    store = _store(request)
    role = Role(slug=body.slug, name=body.name, permissions=_check_permissions(body.permissions))
    try:
        role_id = store.create_role(role)
    except IntegrityError as exc:
        raise _conflict() from exc
    return RoleResponse.from_role(store.get_by_id(role_id))


@router.get("/roles", response_model=list[RoleResponse], dependencies=[Depends(require_permission(PERM_ROLE_READ))])
def list_roles(request: Request) -> list[RoleResponse]:
    return [RoleResponse.from_role(r) for r in _store(request).list_roles()]


@router.get("/roles/{ref}", response_model=RoleResponse, dependencies=[Depends(require_permission(PERM_ROLE_READ))])
def get_role(request: Request, ref: str) -> RoleResponse:
    """Fetch a role by numeric id or by slug."""
    role = _store(request).get(parse_role_ref(ref))
    if role is None:
        raise _not_found()
    return RoleResponse.from_role(role)


@router.put(
    "/roles/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(require_permission(PERM_ROLE_UPDATE))],
)
def update_role(request: Request, role_id: int, body: RoleUpdate) -> RoleResponse:
    """Rewrite a role. Omitting permissions keeps the stored list.

    Renaming a slug orphans users that still carry the old one: they are
    denied everything until reassigned.
    """
    store = _store(request)
    permissions = _check_permissions(body.permissions) if body.permissions is not None else None
    try:
        updated = store.update_role(role_id, body.slug, body.name, permissions)
    except IntegrityError as exc:
        raise _conflict() from exc
    if not updated:
        raise _not_found()
    return RoleResponse.from_role(store.get_by_id(role_id))


@router.delete("/roles/{role_id}", status_code=204, dependencies=[Depends(require_permission(PERM_ROLE_DELETE))])
def delete_role(request: Request, role_id: int) -> Response:
    if not _store(request).delete_role(role_id):
        raise _not_found()
    return Response(status_code=204)


@router.put(
    "/roles/{role_id}/permissions",
    response_model=StatusResponse,
    dependencies=[Depends(require_permission(PERM_ROLE_UPDATE))],
)
def set_permissions(request: Request, role_id: int, body: list[str] = Body()) -> StatusResponse:
    """Replace the whole permission list."""
    if not _store(request).set_permissions(role_id, _check_permissions(body)):
        raise _not_found()
    return StatusResponse(status="permissions updated")


@router.post(
    "/roles/{role_id}/permissions",
    response_model=StatusResponse,
    dependencies=[Depends(require_permission(PERM_ROLE_UPDATE))],
)
def add_permission(request: Request, role_id: int, body: PermissionGrant) -> StatusResponse:
    """Grant one permission. Granting one the role already has is a no-op."""
    _check_permissions([body.permission])
    if not _store(request).add_permission(role_id, body.permission):
        raise _not_found()
    return StatusResponse(status="permission added")


@router.delete(
    "/roles/{role_id}/permissions/{permission}",
    response_model=StatusResponse,
    dependencies=[Depends(require_permission(PERM_ROLE_UPDATE))],
)
def remove_permission(request: Request, role_id: int, permission: str) -> StatusResponse:
    """Revoke one permission. Revoking one the role lacks is a no-op."""
    if not _store(request).remove_permission(role_id, permission):
        raise _not_found()
    return StatusResponse(status="permission removed")
