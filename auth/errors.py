"""
auth/errors.py -- Exception hierarchy for the credential and policy core.

These are library-level errors: nothing here knows about HTTP. The FastAPI
dependency layer (auth/dependencies.py) and the route handlers translate them
into status codes:

  WeakInputError          -> 400 (password rejected before hashing)
  TokenError (any kind)   -> 401 (bearer token not acceptable)
  PolicyUnavailableError  -> 500 (role store read failed; never "allow all")

Forbidden and Unauthenticated have no class of their own. They only exist at
the request boundary, where they are raised as HTTPException directly.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by the auth package."""


class WeakInputError(AuthError, ValueError):
    """A password did not meet the length policy and was not hashed."""


# ---------------------------------------------------------------------------
# Token verification
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    """A bearer token failed verification.

    Raised directly for structurally broken tokens and claim sets that do not
    carry the expected identity fields. The subclasses below name the three
    failures callers may want to tell apart in logs and tests.
    """


class SignatureInvalidError(TokenError):
    """The signature does not match the signing input under the current secret."""


class AlgorithmMismatchError(TokenError):
    """The token header declares an algorithm other than the pinned one."""


class TokenExpiredError(TokenError):
    """The verification time is past the token's expiry timestamp."""


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class PolicyUnavailableError(AuthError):
    """The role store could not be read, so no policy decision is possible."""
