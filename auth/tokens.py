"""
auth/tokens.py -- Signed bearer token issuance and verification.

Security design decisions:
  JWT via python-jose, HS256 only. The token is the usual three-segment
       header.payload.signature string. The payload carries exactly user_id,
       role, iat, exp and iss -- nothing is stored server-side.

  Algorithm pinning: the unverified header is inspected BEFORE any signature
       work and anything other than HS256 (including "none" and the other HMAC
       sizes) is rejected with AlgorithmMismatchError. This closes the
       algorithm-confusion hole where a token picks its own verification
       method.

  Signature encoding: jose decodes base64url leniently, so several spellings
       of the final signature character map to the same bytes. verify()
       re-encodes the verified signature and rejects any non-canonical form,
       so no single-character edit of a valid token still verifies.

  Expiry is checked here rather than inside jose so that verification time
       can be supplied by the caller (tests pin the clock). A token is expired
       when now > exp; at exactly exp it is still valid.

  The signing secret is a constructor argument. TokenCodec.from_settings()
       builds the process-wide instance once at startup; nothing reads the
       secret from a mutable global.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode, base64url_encode

from auth.errors import AlgorithmMismatchError, SignatureInvalidError, TokenError, TokenExpiredError
from auth.models import IdentityClaims
from core.config import Settings

logger = logging.getLogger("stockroom.auth")

ALGORITHM = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issue and verify HS256 tokens for one signing secret.

    Instances hold no mutable state and are safe to share across requests.

    Usage:
        codec = TokenCodec(secret_key="...", ttl_seconds=86400, issuer="inventory-system")
        token = codec.issue(user_id=7, role="clerk")
        claims = codec.verify(token)
    """

    def __init__(self, secret_key: str, ttl_seconds: int, issuer: str) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret_key = secret_key
        self.ttl_seconds = ttl_seconds
        self.issuer = issuer

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenCodec:
        return cls(
            secret_key=settings.secret_key,
            ttl_seconds=settings.token_ttl_seconds,
            issuer=settings.token_issuer,
        )

    def issue(self, user_id: int, role: str, now: datetime | None = None) -> str:
        """Return a signed token for the given identity, valid for ttl_seconds."""
        issued_at = int((now or _utcnow()).timestamp())
        payload = {
            "user_id": user_id,
            "role": role,
            "iat": issued_at,
            "exp": issued_at + self.ttl_seconds,
            "iss": self.issuer,
        }
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify(self, token: str, now: datetime | None = None) -> IdentityClaims:
        """Verify a token and return its claims.

        Raises:
            AlgorithmMismatchError: header alg is not HS256.
            SignatureInvalidError:  signature does not verify, or the token
                                    cannot be parsed at all.
            TokenExpiredError:      now is past the exp claim.
            TokenError:             issuer or identity claims are wrong.
        """
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            raise SignatureInvalidError("Token is not a well-formed JWT.") from exc

        alg = header.get("alg")
        if alg != ALGORITHM:
            logger.warning("Rejected token declaring alg=%r", alg)
            raise AlgorithmMismatchError(f"Token algorithm {alg!r} is not accepted.")

        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[ALGORITHM],
                issuer=self.issuer,
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            raise TokenError(f"Token claims rejected: {exc}") from exc
        except JWTError as exc:
            raise SignatureInvalidError("Token signature verification failed.") from exc

        # The last base64url character of a 32-byte signature carries two unused
        # bits. Only the canonical encoding of the verified bytes is accepted.
        signature = token.rsplit(".", 1)[1]
        if base64url_encode(base64url_decode(signature.encode("ascii"))).decode("ascii") != signature:
            raise SignatureInvalidError("Token signature is not canonically encoded.")

        claims = _claims_from_payload(payload)
        if (now or _utcnow()).timestamp() > claims.expires_at:
            raise TokenExpiredError("Token has expired.")
        return claims


def _claims_from_payload(payload: dict) -> IdentityClaims:
    user_id = payload.get("user_id")
    role = payload.get("role")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")

    # bool is an int subclass; a token saying user_id=true is not an identity.
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise TokenError("Token is missing a valid user_id claim.")
    if not isinstance(role, str) or not role:
        raise TokenError("Token is missing a valid role claim.")
    if not isinstance(expires_at, (int, float)) or isinstance(expires_at, bool):
        raise TokenError("Token is missing a valid exp claim.")
    if not isinstance(issued_at, (int, float)) or isinstance(issued_at, bool):
        raise TokenError("Token is missing a valid iat claim.")

    return IdentityClaims(
        user_id=user_id,
        role=role,
        issued_at=int(issued_at),
        expires_at=int(expires_at),
        issuer=payload["iss"],
    )
