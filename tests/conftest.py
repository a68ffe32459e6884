"""
tests/conftest.py -- Shared test fixtures for Stockroom integration tests.

This module provides:
  - _make_test_stores(): isolated named shared-memory DB for users + roles
  - _patch_lifespan(): wires test collaborators into app.state, bypassing real startup
  - sample routes under /api/v1/orders standing in for permission-gated business routes
  - api_client: TestClient plus seeded admin/clerk users and their tokens

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker thread.

DEBUG and LOGIN_RATE_LIMIT must be set before any api/auth import:
get_settings() is cached on first use, DEBUG lets it generate a SECRET_KEY,
and a generous login limit keeps the suite from tripping the rate limiter.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")

import pytest
from fastapi import APIRouter, Depends
from fastapi.testclient import TestClient

from api.main import app
from auth.dependencies import authenticate, require_permission
from auth.models import Role, User
from auth.passwords import hash_password
from auth.permissions import PERM_ORDER_CREATE, PERM_ORDER_DELETE, PERM_ORDER_READ, ROLE_ADMIN, USER_ADMIN
from auth.policy import PolicyResolver
from auth.store import RoleStore, UserStore
from auth.tokens import TokenCodec

TEST_SECRET = "test-secret-key-that-is-long-enough-0123456789"
TEST_ISSUER = "inventory-system"

# ---------------------------------------------------------------------------
# Stand-in order routes
#
# Order CRUD lives outside this repository. These stand-ins give the pipeline
# something permission-gated to protect, wired exactly as a real router is.
# ---------------------------------------------------------------------------

orders_stub = APIRouter()


@orders_stub.get("/orders", dependencies=[Depends(require_permission(PERM_ORDER_READ))])
def stub_list_orders() -> dict:
    return {"orders": []}


@orders_stub.post("/orders", status_code=201, dependencies=[Depends(require_permission(PERM_ORDER_CREATE))])
def stub_create_order() -> dict:
    return {"status": "created"}


@orders_stub.delete("/orders/{order_id}", dependencies=[Depends(require_permission(PERM_ORDER_DELETE))])
def stub_delete_order(order_id: int) -> dict:
    return {"status": "deleted", "id": order_id}


# Authorization wired without Authentication -- a programming error the
# pipeline must answer with 401, not a crash.
unwired_stub = APIRouter()


@unwired_stub.get("/unwired", dependencies=[Depends(require_permission(PERM_ORDER_READ))])
def stub_unwired() -> dict:
    return {"status": "should not get here"}


app.include_router(orders_stub, prefix="/api/v1", dependencies=[Depends(authenticate)])
app.include_router(unwired_stub, prefix="/api/v1/stub")


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, RoleStore]:
    """Create a user store and a role store over one named shared-memory DB."""
    url = f"sqlite:///file:test_auth_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(url), RoleStore(url)


def _patch_lifespan(user_store: UserStore, role_store: RoleStore, codec: TokenCodec):
    """Return an async context manager that replaces the real lifespan."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.role_store = role_store
        app.state.token_codec = codec
        app.state.policy_resolver = PolicyResolver(role_store)
        yield

    return test_lifespan


@dataclass
class ApiContext:
    client: TestClient
    codec: TokenCodec
    user_store: UserStore
    role_store: RoleStore
    admin_id: int
    admin_token: str
    alice_id: int
    alice_token: str

    def auth(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext over a freshly seeded database.

    Seed data:
      roles  admin -> user:*, role:*, order:*      clerk -> order:create, order:read
      users  testadmin / testpass123 (admin)       alice / secret1 (clerk)
    """
    user_store, role_store = _make_test_stores(request.module.__name__.rsplit(".", 1)[-1])
    role_store.create_role(Role(slug="admin", name="Administrator", permissions=[USER_ADMIN, ROLE_ADMIN, "order:*"]))
    role_store.create_role(Role(slug="clerk", name="Clerk", permissions=[PERM_ORDER_CREATE, PERM_ORDER_READ]))
    admin_id = user_store.create_user(
        User(username="testadmin", role="admin", hashed_password=hash_password("testpass123"))
    )
    alice_id = user_store.create_user(
        User(username="alice", role="clerk", display_name="Alice", hashed_password=hash_password("secret1"))
    )

    codec = TokenCodec(secret_key=TEST_SECRET, ttl_seconds=3600, issuer=TEST_ISSUER)
    app.router.lifespan_context = _patch_lifespan(user_store, role_store, codec)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield ApiContext(
            client=client,
            codec=codec,
            user_store=user_store,
            role_store=role_store,
            admin_id=admin_id,
            admin_token=codec.issue(admin_id, "admin"),
            alice_id=alice_id,
            alice_token=codec.issue(alice_id, "clerk"),
        )

    role_store.close()
    user_store.close()
