"""Unit tests for auth/passwords.py -- hashing, verification and login checks.

Covers:
- hash_password() produces salted bcrypt hashes that verify
- hash_password() rejects short, empty and over-long passwords
- verify_password() returns False (never raises) on malformed hashes
- authenticate_user() returns the user only for a correct, active account
"""

import pytest

from auth.errors import AuthError, WeakInputError
from auth.models import User
from auth.passwords import MIN_PASSWORD_LENGTH, authenticate_user, hash_password, verify_password
from auth.store import UserStore


@pytest.fixture
def store():
    """In-memory UserStore with one active and one disabled account."""
    s = UserStore("sqlite:///:memory:")
    s.create_user(User(username="alice", role="clerk", hashed_password=hash_password("secret1")))
    s.create_user(User(username="mallory", role="clerk", hashed_password=hash_password("secret2"), is_active=False))
    yield s
    s.close()


class TestHashPassword:
    def test_hash_verifies_against_plaintext(self) -> None:
        hashed = hash_password("secret1")
        assert hashed != "secret1"
        assert hashed.startswith("$2")
        assert verify_password("secret1", hashed) is True

    def test_wrong_password_does_not_verify(self) -> None:
        hashed = hash_password("secret1")
        assert verify_password("secret2", hashed) is False
        assert verify_password("", hashed) is False

    def test_suffix_changes_the_hash(self) -> None:
        assert verify_password("secret1", hash_password("secret1x")) is False

    def test_same_password_hashes_differently(self) -> None:
        """Each hash carries its own salt."""
        first = hash_password("secret1")
        second = hash_password("secret1")
        assert first != second
        assert verify_password("secret1", first)
        assert verify_password("secret1", second)

    def test_minimum_length_accepted(self) -> None:
        hashed = hash_password("x" * MIN_PASSWORD_LENGTH)
        assert verify_password("x" * MIN_PASSWORD_LENGTH, hashed)

    @pytest.mark.parametrize("plain", ["", "a", "12345"])
    def test_short_password_rejected(self, plain: str) -> None:
        with pytest.raises(WeakInputError):
            hash_password(plain)

    def test_over_long_password_rejected(self) -> None:
        with pytest.raises(WeakInputError):
            hash_password("p" * 73)

    def test_weak_input_is_an_auth_and_value_error(self) -> None:
        with pytest.raises(AuthError):
            hash_password("abc")
        with pytest.raises(ValueError):
            hash_password("abc")


class TestVerifyPassword:
    @pytest.mark.parametrize("bad_hash", ["", "not-a-bcrypt-hash", "$2b$12$tooshort"])
    def test_malformed_hash_is_false(self, bad_hash: str) -> None:
        assert verify_password("secret1", bad_hash) is False

    def test_non_ascii_password_round_trip(self) -> None:
        hashed = hash_password("pässwörd")
        assert verify_password("pässwörd", hashed)
        assert not verify_password("passwort", hashed)


class TestAuthenticateUser:
    def test_correct_credentials_return_user(self, store: UserStore) -> None:
        user = authenticate_user(store, "alice", "secret1")
        assert user is not None
        assert user.username == "alice"
        assert user.role == "clerk"

    def test_wrong_password_returns_none(self, store: UserStore) -> None:
        assert authenticate_user(store, "alice", "wrong-password") is None

    def test_unknown_user_returns_none(self, store: UserStore) -> None:
        assert authenticate_user(store, "nobody", "secret1") is None

    def test_username_is_case_sensitive(self, store: UserStore) -> None:
        assert authenticate_user(store, "Alice", "secret1") is None

    def test_inactive_user_returns_none(self, store: UserStore) -> None:
        assert authenticate_user(store, "mallory", "secret2") is None
