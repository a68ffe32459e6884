"""
api/routes/v1/auth.py -- Login and current-identity endpoints.

Routes:
  POST /api/v1/auth/login      -- password login; returns a bearer token
  GET  /api/v1/auth/me         -- current user info (requires auth)
  POST /api/v1/auth/password   -- change own password (requires auth + current password)

Security:
  POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_username() + verify_password().
  Login failures share one response whatever the cause.
  Cache-Control: no-store on login responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import LoginRequest, LoginResponse, PasswordChange, StatusResponse, UserResponse, UserSummary
from auth.dependencies import authenticate
from auth.errors import WeakInputError
from auth.models import Identity
from auth.passwords import authenticate_user, hash_password, verify_password
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/login:     public -- the only way to obtain a token
# - GET  /api/v1/auth/me:        requires auth (authenticate)
# - POST /api/v1/auth/password:  requires auth (authenticate)
router = APIRouter()


def _bad_credentials() -> JSONResponse:
    resp = JSONResponse(
        status_code=401,
        content={"error": {"code": "bad_credentials", "message": "Invalid username or password."}},
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@limiter.limit(get_settings().login_rate_limit)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify a username/password pair and issue a bearer token.

    Identity claims are created here and nowhere else.
    """
    user_store: UserStore = request.app.state.user_store
    codec: TokenCodec = request.app.state.token_codec

    user = authenticate_user(user_store, body.username, body.password)
    if user is None:
        return _bad_credentials()

    token = codec.issue(user.id, user.role)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=codec.ttl_seconds,
            user=UserSummary(
                id=user.id,
                username=user.username,
                display_name=user.display_name,
                role=user.role,
            ),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(request: Request, identity: Identity = Depends(authenticate)) -> UserResponse:
    """Return the current user's record as stored now (role may differ from the token's)."""
    user = request.app.state.user_store.get_by_id(identity.user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return UserResponse.from_user(user)


@router.post("/auth/password", response_model=StatusResponse)
def change_own_password(
    request: Request,
    body: PasswordChange,
    identity: Identity = Depends(authenticate),
) -> StatusResponse:
    """Replace the caller's password after re-checking the current one.

    Tokens issued before the change stay valid until they expire.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(identity.user_id)
    if user is None or not verify_password(body.current_password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail={"code": "bad_credentials", "message": "Current password is incorrect."},
        )
    try:
        new_hash = hash_password(body.new_password)
    except WeakInputError as exc:
        raise HTTPException(status_code=400, detail={"code": "weak_password", "message": str(exc)}) from exc
    user_store.update_password(user.id, new_hash)
    return StatusResponse(status="password updated")
