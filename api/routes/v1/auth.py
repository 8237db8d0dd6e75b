"""
api/routes/v1/auth.py -- Session endpoints.

Routes:
  POST /api/v1/auth/login            -- email/password login; sets accessToken cookie
  POST /api/v1/auth/logout           -- clears the cookie; 200
  GET  /api/v1/auth/me               -- current user profile (requires session)
  POST /api/v1/auth/verify           -- standalone token check; always 200
  POST /api/v1/auth/change-password  -- replace own password (requires session)

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT, default 10/minute).
  authenticate_user() provides timing equalization -- use it, never inline
  get_by_email() + verify_password().
  Cache-Control: no-store on login responses.
  /verify reports failures in the body only and never says why a token was
  rejected.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    VerifyRequest,
    VerifyResponse,
)
from auth.dependencies import get_current_user, get_store
from auth.models import User
from auth.store import CredentialStore
from auth.tokens import (
    TokenService,
    authenticate_user,
    clear_auth_cookie,
    hash_password,
    set_auth_cookie,
)

logger = logging.getLogger("ticketdesk.api.auth")

# Auth policy:
# - POST /api/v1/auth/login:            public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:           public -- clearing a cookie needs no prior auth
# - POST /api/v1/auth/verify:           public -- the token is the input
# - GET  /api/v1/auth/me:               requires session (get_current_user)
# - POST /api/v1/auth/change-password:  requires session (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(login_rate_limit)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with professional email and password; set the session cookie.

    Returns the same generic error for an unknown email and a wrong password
    ("bad_credentials") to avoid leaking which addresses are registered.
    """
    store: CredentialStore = get_store(request)
    tokens: TokenService = request.app.state.tokens

    user = authenticate_user(store, body.email, body.password)
    if user is None:
        logger.info("Failed login attempt")
        resp = JSONResponse(
            status_code=401,
            content={"error": {"code": "bad_credentials", "message": "Invalid email or password."}},
        )
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = tokens.issue(user.id, user.email_professional)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message="Login successful.",
            token=token,
            must_change_password=user.must_change_password,
        ).model_dump(by_alias=True),
    )
    set_auth_cookie(resp, token, tokens.expire_seconds)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("User %s logged in", user.id)
    return resp


@router.post("/auth/logout", response_model=MessageResponse)
async def logout() -> JSONResponse:
    """Clear the session cookie. No server-side state to revoke."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.post("/auth/verify", response_model=VerifyResponse)
async def verify(request: Request, body: Optional[VerifyRequest] = None) -> VerifyResponse:
    """Check a token passed in the body (not the cookie).

    Signature, structure and expiry failures all collapse into the same
    "invalid_token" answer.
    """
    token = body.token if body is not None else None
    if token is None or token == "":
        return VerifyResponse(authenticated=False, error="missing_token")
    tokens: TokenService = request.app.state.tokens
    if not isinstance(token, str) or tokens.verify(token) is None:
        return VerifyResponse(authenticated=False, error="invalid_token")
    return VerifyResponse(authenticated=True)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)) -> MeResponse:
    """Return the profile of the currently authenticated user."""
    return MeResponse(
        id=current_user.id,
        first_name=current_user.first_name,
        last_name=current_user.last_name,
        email_professional=current_user.email_professional,
        is_admin=current_user.is_admin,
        must_change_password=current_user.must_change_password,
    )


@router.post("/auth/change-password", response_model=MessageResponse)
def change_password(
    request: Request,
    body: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    """Replace the caller's password and clear the must-change flag.

    The current session stays valid; tokens are not tied to the password.
    """
    store: CredentialStore = get_store(request)
    store.update_password(current_user.id, hash_password(body.password))
    logger.info("User %s changed their password", current_user.id)
    return MessageResponse(message="Password updated.")
