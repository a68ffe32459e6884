"""Unit tests for auth/tokens.py -- TokenCodec issue and verify.

Covers:
- issue() -> verify() returns the same user_id and role
- payload carries exactly user_id, role, iat, exp, iss with exp = iat + ttl
- expiry: valid at exactly exp, expired one second later
- any altered character in payload or signature, the last one included, fails the signature check
- algorithm pinning: HS512 and "none" headers are rejected before verification
- malformed tokens, wrong secret, wrong issuer and bad identity claims
"""

import base64
import json
import string
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from auth.errors import AlgorithmMismatchError, SignatureInvalidError, TokenError, TokenExpiredError
from auth.tokens import ALGORITHM, TokenCodec
from core.config import Settings

SECRET = "unit-test-secret-key-0123456789abcdef"
ISSUER = "inventory-system"
TTL = 3600
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(secret_key=SECRET, ttl_seconds=TTL, issuer=ISSUER)


def _b64(data: dict) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode()
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _claims(**overrides) -> dict:
    iat = int(T0.timestamp())
    payload = {"user_id": 7, "role": "clerk", "iat": iat, "exp": iat + TTL, "iss": ISSUER}
    payload.update(overrides)
    return payload


def _flip(token: str, index: int) -> str:
    replacement = "B" if token[index] == "A" else "A"
    return token[:index] + replacement + token[index + 1 :]


class TestRoundTrip:
    def test_verify_returns_issued_identity(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0)
        claims = codec.verify(token, now=T0)
        assert claims.user_id == 7
        assert claims.role == "clerk"
        assert claims.issuer == ISSUER
        assert claims.issued_at == int(T0.timestamp())
        assert claims.expires_at == claims.issued_at + TTL

    def test_token_has_three_segments(self, codec: TokenCodec) -> None:
        assert codec.issue(7, "clerk").count(".") == 2

    def test_payload_fields_exact(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0)
        payload = jwt.get_unverified_claims(token)
        assert set(payload) == {"user_id", "role", "iat", "exp", "iss"}
        assert payload["exp"] - payload["iat"] == TTL

    def test_header_declares_hs256(self, codec: TokenCodec) -> None:
        assert jwt.get_unverified_header(codec.issue(7, "clerk"))["alg"] == ALGORITHM == "HS256"

    def test_default_clock(self, codec: TokenCodec) -> None:
        claims = codec.verify(codec.issue(1, "admin"))
        assert claims.user_id == 1

    def test_from_settings(self) -> None:
        settings = Settings(_env_file=None, secret_key=SECRET, token_ttl_seconds=120, token_issuer="elsewhere")
        built = TokenCodec.from_settings(settings)
        assert built.ttl_seconds == 120
        assert built.issuer == "elsewhere"
        assert built.verify(built.issue(3, "clerk")).user_id == 3


class TestConstruction:
    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError):
            TokenCodec(secret_key="", ttl_seconds=TTL, issuer=ISSUER)

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, ttl: int) -> None:
        with pytest.raises(ValueError):
            TokenCodec(secret_key=SECRET, ttl_seconds=ttl, issuer=ISSUER)


class TestExpiry:
    def test_valid_at_exactly_exp(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0)
        assert codec.verify(token, now=T0 + timedelta(seconds=TTL)).user_id == 7

    def test_expired_one_second_later(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0)
        with pytest.raises(TokenExpiredError):
            codec.verify(token, now=T0 + timedelta(seconds=TTL + 1))

    def test_expired_is_a_token_error(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0 - timedelta(days=2))
        with pytest.raises(TokenError):
            codec.verify(token, now=T0)


class TestTampering:
    def test_every_payload_and_signature_change_rejected(self, codec: TokenCodec) -> None:
        """Flip each character of the payload and signature segments in turn, last ones included."""
        token = codec.issue(7, "clerk", now=T0)
        header, payload, signature = token.split(".")
        start = len(header) + 1
        positions = list(range(start, start + len(payload)))
        sig_start = start + len(payload) + 1
        positions += list(range(sig_start, sig_start + len(signature)))

        for index in positions:
            with pytest.raises(SignatureInvalidError):
                codec.verify(_flip(token, index), now=T0)

    def test_every_final_signature_character_rejected(self, codec: TokenCodec) -> None:
        """Spellings of the last character that decode to the same bytes are still forgeries."""
        token = codec.issue(7, "clerk", now=T0)
        alphabet = string.ascii_letters + string.digits + "-_"
        accepted = []
        for char in alphabet.replace(token[-1], ""):
            try:
                codec.verify(token[:-1] + char, now=T0)
            except SignatureInvalidError:
                continue
            accepted.append(char)
        assert accepted == []

    def test_header_change_rejected(self, codec: TokenCodec) -> None:
        token = codec.issue(7, "clerk", now=T0)
        header = token.split(".")[0]
        for index in range(len(header)):
            with pytest.raises(TokenError):
                codec.verify(_flip(token, index), now=T0)

    def test_swapped_payload_rejected(self, codec: TokenCodec) -> None:
        """Promoting yourself by pasting another payload breaks the signature."""
        token = codec.issue(7, "clerk", now=T0)
        header, _, signature = token.split(".")
        forged = ".".join([header, _b64(_claims(role="admin")), signature])
        with pytest.raises(SignatureInvalidError):
            codec.verify(forged, now=T0)

    def test_wrong_secret_rejected(self, codec: TokenCodec) -> None:
        other = TokenCodec(secret_key="another-secret-key-0123456789abcdef", ttl_seconds=TTL, issuer=ISSUER)
        with pytest.raises(SignatureInvalidError):
            codec.verify(other.issue(7, "clerk", now=T0), now=T0)


class TestAlgorithmPinning:
    def test_hs512_rejected(self, codec: TokenCodec) -> None:
        token = jwt.encode(_claims(), SECRET, algorithm="HS512")
        with pytest.raises(AlgorithmMismatchError):
            codec.verify(token, now=T0)

    @pytest.mark.parametrize("alg", ["none", "None", "RS256"])
    def test_unsigned_or_foreign_alg_rejected(self, codec: TokenCodec, alg: str) -> None:
        token = f"{_b64({'alg': alg, 'typ': 'JWT'})}.{_b64(_claims())}."
        with pytest.raises(AlgorithmMismatchError):
            codec.verify(token, now=T0)

    def test_missing_alg_rejected(self, codec: TokenCodec) -> None:
        token = f"{_b64({'typ': 'JWT'})}.{_b64(_claims())}.c2ln"
        with pytest.raises(AlgorithmMismatchError):
            codec.verify(token, now=T0)


class TestMalformed:
    @pytest.mark.parametrize("token", ["", "garbage", "a.b", "a.b.c", "...", "!!!.???.###"])
    def test_unparseable_token_is_signature_invalid(self, codec: TokenCodec, token: str) -> None:
        with pytest.raises(SignatureInvalidError):
            codec.verify(token, now=T0)


class TestClaims:
    def test_wrong_issuer_rejected(self, codec: TokenCodec) -> None:
        other = TokenCodec(secret_key=SECRET, ttl_seconds=TTL, issuer="somebody-else")
        with pytest.raises(TokenError) as excinfo:
            codec.verify(other.issue(7, "clerk", now=T0), now=T0)
        assert type(excinfo.value) is TokenError

    def test_missing_issuer_rejected(self, codec: TokenCodec) -> None:
        payload = _claims()
        del payload["iss"]
        with pytest.raises(TokenError):
            codec.verify(jwt.encode(payload, SECRET, algorithm="HS256"), now=T0)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"user_id": "7"},
            {"user_id": True},
            {"user_id": None},
            {"role": ""},
            {"role": 5},
        ],
    )
    def test_bad_identity_claims_rejected(self, codec: TokenCodec, overrides: dict) -> None:
        token = jwt.encode(_claims(**overrides), SECRET, algorithm="HS256")
        with pytest.raises(TokenError):
            codec.verify(token, now=T0)

    def test_missing_exp_rejected(self, codec: TokenCodec) -> None:
        payload = _claims()
        del payload["exp"]
        with pytest.raises(TokenError):
            codec.verify(jwt.encode(payload, SECRET, algorithm="HS256"), now=T0)
