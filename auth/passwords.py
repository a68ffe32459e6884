"""
auth/passwords.py -- Password hashing, verification, and login credential checks.

Security design decisions:
  bcrypt directly (no passlib wrapper). Each hash embeds the cost factor and a
       fresh random salt, so hashing the same password twice yields two
       different strings that both verify. bcrypt.checkpw compares in constant
       time.

  Length policy: passwords shorter than MIN_PASSWORD_LENGTH are rejected with
       WeakInputError before any hashing happens. bcrypt only looks at the
       first 72 bytes (and bcrypt 5.x refuses longer input outright), so
       longer passwords are rejected too rather than silently truncated.

  Timing equalization: authenticate_user() always runs one bcrypt check, even
       for unknown usernames, against _DUMMY_HASH. Response time therefore does
       not reveal whether a username exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import WeakInputError

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("stockroom.auth")

MIN_PASSWORD_LENGTH = 6
_MAX_PASSWORD_BYTES = 72


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises WeakInputError if the password is empty, shorter than
    MIN_PASSWORD_LENGTH characters, or longer than bcrypt's 72-byte input.
    """
    if not plain or len(plain) < MIN_PASSWORD_LENGTH:
        raise WeakInputError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    encoded = plain.encode("utf-8")
    if len(encoded) > _MAX_PASSWORD_BYTES:
        raise WeakInputError(f"Password must be at most {_MAX_PASSWORD_BYTES} bytes.")
    return bcrypt.hashpw(encoded, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    Never raises: a malformed or empty hash simply does not match.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("stockroom_timing_dummy")


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Check a username/password pair with timing equalization.

    Returns the User on success, None on any failure. Callers must not tell
    the client which factor failed: unknown username, wrong password and
    inactive account all come back as None.
    """
    user = store.get_by_username(username)
    if user is None or not user.hashed_password:
        # Do NOT return before running bcrypt.
        verify_password(password, _DUMMY_HASH)
        logger.info("Login failed: unknown user")
        return None
    if not verify_password(password, user.hashed_password):
        logger.info("Login failed: bad password for user_id=%s", user.id)
        return None
    if not user.is_active:
        logger.info("Login failed: inactive user_id=%s", user.id)
        return None
    return user
