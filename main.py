#!/usr/bin/env python3
"""
Stockroom admin CLI -- bootstrap roles and users without going through the API.

Every management route is permission-gated, so the first admin role and user
have to come from somewhere. This is that somewhere.

Usage:
  python main.py create-role admin "Administrator" --permission "user:*" --permission "role:*"
  python main.py grant clerk order:read
  python main.py create-user alice --role clerk
  python main.py create-user bob --role admin --password s3cret! --display-name "Bob"
  python main.py list-roles
  python main.py permissions

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the user/role database (or pass --db-url).
"""

import argparse
import getpass
import re
from typing import Optional

from sqlalchemy.exc import IntegrityError

from api.models import SLUG_PATTERN
from auth.errors import WeakInputError
from auth.models import Role, User
from auth.passwords import hash_password
from auth.permissions import all_permissions, is_valid_permission
from auth.store import RoleStore, UserStore


def _db_url(args: argparse.Namespace) -> str:
    if args.db_url:
        return args.db_url
    from core.config import get_settings

    return get_settings().database_url


def _invalid(permissions: list[str]) -> list[str]:
    return [p for p in permissions if not is_valid_permission(p)]


def _create_role(args: argparse.Namespace) -> int:
    if len(args.slug) > 64 or not re.fullmatch(SLUG_PATTERN, args.slug):
        print(f"  [!] Invalid role slug '{args.slug}': use lowercase letters, digits, '-' and '_'.")
        return 2
    bad = _invalid(args.permission)
    if bad:
        print(f"  [!] Unknown permission(s): {', '.join(bad)}")
        return 2
    store = RoleStore(_db_url(args))
    try:
        role_id = store.create_role(Role(slug=args.slug, name=args.name, permissions=args.permission))
    except IntegrityError:
        print(f"  [!] Role '{args.slug}' already exists.")
        return 1
    finally:
        store.close()
    print(f"  Created role '{args.slug}' (id={role_id}).")
    return 0


def _grant(args: argparse.Namespace) -> int:
    if _invalid([args.permission]):
        print(f"  [!] Unknown permission: {args.permission}")
        return 2
    store = RoleStore(_db_url(args))
    try:
        role = store.get_by_slug(args.slug)
        if role is None:
            print(f"  [!] Role '{args.slug}' not found.")
            return 1
        store.add_permission(role.id, args.permission)
    finally:
        store.close()
    print(f"  Granted {args.permission} to '{args.slug}'.")
    return 0


def _create_user(args: argparse.Namespace) -> int:
    password: Optional[str] = args.password
    if password is None:
        password = getpass.getpass("  Password: ")
    try:
        hashed = hash_password(password)
    except WeakInputError as exc:
        print(f"  [!] {exc}")
        return 2

    db_url = _db_url(args)
    roles = RoleStore(db_url)
    users = UserStore(db_url)
    try:
        if roles.get_by_slug(args.role) is None:
            print(f"  [!] Role '{args.role}' not found. Create it first with create-role.")
            return 1
        user = User(username=args.username, role=args.role, hashed_password=hashed, display_name=args.display_name)
        try:
            user_id = users.create_user(user)
        except IntegrityError:
            print(f"  [!] User '{args.username}' already exists.")
            return 1
    finally:
        roles.close()
        users.close()
    print(f"  Created user '{args.username}' (id={user_id}, role={args.role}).")
    return 0


def _list_roles(args: argparse.Namespace) -> int:
    store = RoleStore(_db_url(args))
    try:
        roles = store.list_roles()
    finally:
        store.close()
    if not roles:
        print("  No roles defined.")
        return 0
    for role in roles:
        perms = ", ".join(role.permissions) or "(none)"
        print(f"  {role.id:>4}  {role.slug:<16} {role.name:<24} {perms}")
    return 0


def _permissions(args: argparse.Namespace) -> int:
    for perm in all_permissions():
        print(f"  {perm}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stockroom",
        description="Stockroom admin tasks: roles, permissions and users.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL from settings)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("create-role", help="Create a role")
    p.add_argument("slug", help="Role slug, e.g. clerk")
    p.add_argument("name", help="Human-readable role name")
    p.add_argument(
        "--permission",
        action="append",
        default=[],
        metavar="PERM",
        help="Permission to grant (repeatable), e.g. order:read or order:*",
    )
    p.set_defaults(func=_create_role)

    p = sub.add_parser("grant", help="Grant one permission to an existing role")
    p.add_argument("slug")
    p.add_argument("permission")
    p.set_defaults(func=_grant)

    p = sub.add_parser("create-user", help="Create a user with a hashed password")
    p.add_argument("username")
    p.add_argument("--role", required=True, metavar="SLUG")
    p.add_argument("--password", default=None, help="Password (prompted for if omitted)")
    p.add_argument("--display-name", default=None)
    p.set_defaults(func=_create_user)

    p = sub.add_parser("list-roles", help="Show roles and their permissions")
    p.set_defaults(func=_list_roles)

    p = sub.add_parser("permissions", help="List every grantable permission")
    p.set_defaults(func=_permissions)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
