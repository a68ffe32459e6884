"""
auth/store.py -- SQLAlchemy Core persistence for users and roles.

Pattern: Repository + Data Mapper. UserStore and RoleStore are the
repositories; _row_to_user / _row_to_role are the mappers. Route and
dependency code never touches SQL directly.

These stores are the external collaborators of the auth core: the core reads
credential records and role policies through them, and writes only a new
password hash. Everything else here serves the admin routes and the CLI.

Security:
  All queries use bound parameters. No f-strings in SQL.
  Role permissions are stored as a JSON array in a TEXT column. A row whose
  JSON cannot be decoded raises instead of being read as "no permissions".

Both stores can share one database URL; each creates only its own table.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, text
from sqlalchemy.engine import Engine

from auth.models import Role, RoleById, RoleBySlug, RoleRef, User, UserById, UserByUsername, UserRef

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("display_name", String(255)),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(64), nullable=False),
    Column("created_at", String(32), nullable=False),
    Column("is_active", Integer, nullable=False, server_default="1"),
)

_roles = Table(
    "roles",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("slug", String(64), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("permissions", Text, nullable=False, server_default="[]"),  # JSON array
)


# ---------------------------------------------------------------------------
# Engine helpers
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so policy reads do not block behind role edits.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _make_engine(db_url: str) -> Engine:
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User credential records.

    Usage:
        store = UserStore("sqlite:///auth.db")
        uid = store.create_user(User(username="alice", role="clerk", hashed_password=hash_password("secret1")))
        user = store.get_by_username("alice")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = _make_engine(db_url)
        _users.create(self.engine, checkfirst=True)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    display_name=user.display_name,
                    hashed_password=user.hashed_password,
                    role=user.role,
                    created_at=_now_iso(),
                    is_active=1 if user.is_active else 0,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get(self, ref: UserRef) -> User | None:
        """Look up a user by id or by username, depending on the variant."""
        if isinstance(ref, UserById):
            return self.get_by_id(ref.id)
        if isinstance(ref, UserByUsername):
            return self.get_by_username(ref.username)
        raise TypeError(f"Unsupported user reference: {ref!r}")

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        """Look up a user by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(self, role: str | None = None, active: bool | None = None) -> list[User]:
        """Return users ordered by username, optionally filtered by role and active flag."""
        query = _users.select()
        if role is not None:
            query = query.where(_users.c.role == role)
        if active is not None:
            query = query.where(_users.c.is_active == (1 if active else 0))
        with self.engine.connect() as conn:
            rows = conn.execute(query.order_by(_users.c.username)).fetchall()
        return [_row_to_user(r) for r in rows]

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Replace a user's password hash. Returns False if user_id was not found."""
        return self._update(user_id, hashed_password=hashed_password)

    def set_active(self, user_id: int, active: bool) -> bool:
        return self._update(user_id, is_active=1 if active else 0)

    def update_role(self, user_id: int, role: str) -> bool:
        return self._update(user_id, role=role)

    def delete_user(self, user_id: int) -> bool:
        """Permanently delete a user record. Returns True if deleted, False if not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    def _update(self, user_id: int, **fields) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


class RoleStore:
    """Repository for Role policy entries (slug -> permission list).

    Usage:
        store = RoleStore("sqlite:///auth.db")
        store.create_role(Role(slug="clerk", name="Clerk", permissions=["order:create", "order:read"]))
        roles = store.list_roles()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = _make_engine(db_url)
        _roles.create(self.engine, checkfirst=True)

    def create_role(self, role: Role) -> int:
        """Insert a new role and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the slug already exists.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _roles.insert().values(
                    slug=role.slug,
                    name=role.name,
                    permissions=json.dumps(_dedupe(role.permissions)),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get(self, ref: RoleRef) -> Role | None:
        """Look up a role by id or by slug, depending on the variant."""
        if isinstance(ref, RoleById):
            return self.get_by_id(ref.id)
        if isinstance(ref, RoleBySlug):
            return self.get_by_slug(ref.slug)
        raise TypeError(f"Unsupported role reference: {ref!r}")

    def get_by_id(self, role_id: int) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.id == role_id)).fetchone()
        return _row_to_role(row) if row is not None else None

    def get_by_slug(self, slug: str) -> Role | None:
        with self.engine.connect() as conn:
            row = conn.execute(_roles.select().where(_roles.c.slug == slug)).fetchone()
        return _row_to_role(row) if row is not None else None

    def list_roles(self) -> list[Role]:
        """Return every role ordered by name. This is the policy source."""
        with self.engine.connect() as conn:
            rows = conn.execute(_roles.select().order_by(_roles.c.name)).fetchall()
        return [_row_to_role(r) for r in rows]

    def update_role(self, role_id: int, slug: str, name: str, permissions: list[str] | None = None) -> bool:
        """Rewrite a role's slug and name. permissions=None keeps the stored list.

        Raises sqlalchemy.exc.IntegrityError if the new slug collides.
        """
        values: dict = {"slug": slug, "name": name}
        if permissions is not None:
            values["permissions"] = json.dumps(_dedupe(permissions))
        with self.engine.connect() as conn:
            result = conn.execute(_roles.update().where(_roles.c.id == role_id).values(**values))
            conn.commit()
        return result.rowcount > 0

    def delete_role(self, role_id: int) -> bool:
        """Delete a role. Users still holding the slug are denied everything afterwards."""
        with self.engine.connect() as conn:
            result = conn.execute(_roles.delete().where(_roles.c.id == role_id))
            conn.commit()
        return result.rowcount > 0

    def set_permissions(self, role_id: int, permissions: list[str]) -> bool:
        """Replace the whole permission list of a role."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _roles.update().where(_roles.c.id == role_id).values(permissions=json.dumps(_dedupe(permissions)))
            )
            conn.commit()
        return result.rowcount > 0

    def add_permission(self, role_id: int, permission: str) -> bool:
        """Grant one permission. Already present is a no-op. False if the role is missing."""
        role = self.get_by_id(role_id)
        if role is None:
            return False
        if permission not in role.permissions:
            self.set_permissions(role_id, role.permissions + [permission])
        return True

    def remove_permission(self, role_id: int, permission: str) -> bool:
        """Revoke one permission. Not present is a no-op. False if the role is missing."""
        role = self.get_by_id(role_id)
        if role is None:
            return False
        remaining = [p for p in role.permissions if p != permission]
        if len(remaining) != len(role.permissions):
            self.set_permissions(role_id, remaining)
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _dedupe(permissions: list[str]) -> list[str]:
    return list(dict.fromkeys(permissions))


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        display_name=row.display_name,
        hashed_password=row.hashed_password,
        role=row.role,
        created_at=row.created_at,
        is_active=bool(row.is_active),
    )


def _row_to_role(row) -> Role:
    permissions = json.loads(row.permissions) if row.permissions else []
    if not isinstance(permissions, list):
        raise ValueError(f"Role {row.slug!r} has a malformed permissions column")
    return Role(id=row.id, slug=row.slug, name=row.name, permissions=[str(p) for p in permissions])
