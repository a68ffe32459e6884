"""
auth/dependencies.py -- FastAPI Depends() helpers: the request auth pipeline.

Two stages, always in this order:

  authenticate()             Authentication. Reads "Authorization: Bearer <token>",
                             verifies the token with app.state.token_codec and
                             stores an Identity on request.state. Any failure
                             is a 401 before business logic runs.

  require_permission(perm)   Authorization. Reads the Identity set above, loads
                             the user's current record and a fresh policy map,
                             and asks auth.permissions.is_authorized(). 401 if
                             the identity or user is missing, 500 if the policy
                             cannot be loaded, 403 naming the permission if denied.

Wiring: protected routers are included with dependencies=[Depends(authenticate)];
individual routes add dependencies=[Depends(require_permission("order:delete"))].
FastAPI runs router-level dependencies before route-level ones, which gives the
fixed Authentication -> Authorization order.

The role used for the decision is the one in the user store *now*, not the one
baked into the token, so a role change takes effect without re-login.

Layer rule: may import fastapi (this module is part of the DI system). No
imports from api/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import HTTPException, Request

from auth.errors import PolicyUnavailableError, TokenError
from auth.models import Identity, User
from auth.permissions import is_authorized

logger = logging.getLogger("stockroom.auth")

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": message},
        headers=_BEARER_CHALLENGE,
    )


def authenticate(request: Request) -> Identity:
    """Authentication stage. Returns the verified Identity or raises HTTP 401.

    The header must be exactly two space-separated fields, the first literally
    "Bearer". Anything else is rejected without looking at the token.

    Use as a FastAPI dependency:
        @router.get("/me")
        def route(identity: Identity = Depends(authenticate)): ...
    """
    header = request.headers.get("Authorization")
    if not header:
        raise _unauthorized("Authorization header required.")

    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise _unauthorized("Invalid authorization header format.")

    codec = request.app.state.token_codec
    try:
        claims = codec.verify(parts[1])
    except TokenError as exc:
        logger.info("Rejected bearer token on %s: %s", request.url.path, type(exc).__name__)
        raise _unauthorized("Invalid or expired token.") from exc

    identity = Identity(user_id=claims.user_id, role=claims.role)
    request.state.identity = identity
    return identity


def current_identity(request: Request) -> Identity:
    """Return the Identity set by authenticate(), or raise HTTP 401 if absent."""
    identity = getattr(request.state, "identity", None)
    if not isinstance(identity, Identity):
        raise _unauthorized("Authentication required.")
    return identity


def require_permission(permission: str) -> Callable[[Request], User]:
    """Build the Authorization stage for one required permission.

    The returned dependency yields the caller's current User record so
    handlers that need it (e.g. to compare ids) do not load it twice.

    Use as a FastAPI dependency:
        @router.delete("/orders/{id}", dependencies=[Depends(require_permission("order:delete"))])
    """

    def check_permission(request: Request) -> User:
        # Missing identity means the route was wired without authenticate().
        identity = current_identity(request)

        user = request.app.state.user_store.get_by_id(identity.user_id)
        if user is None or not user.is_active:
            # Same answer whether the id is unknown or disabled.
            raise _unauthorized("Authentication required.")

        try:
            policy = request.app.state.policy_resolver.resolve()
        except PolicyUnavailableError as exc:
            raise HTTPException(
                status_code=500,
                detail={"code": "policy_unavailable", "message": "Failed to load permissions."},
            ) from exc

        if not is_authorized(user.role, policy, permission):
            logger.warning("Denied %s to user_id=%s role=%s", permission, user.id, user.role)
            raise HTTPException(
                status_code=403,
                detail={
                    "code": "forbidden",
                    "message": f"Access denied: missing {permission}",
                    "permission": permission,
                },
            )
        return user

    check_permission.__name__ = f"require_{permission.replace(':', '_').replace('*', 'all')}"
    return check_permission
