"""
auth/tokens.py -- Session tokens, password hashing, and the session cookie.

Security design decisions:
  JWT: python-jose with HS256. TokenService is constructed once at startup
       with the signing secret from core.config (never read per call). Tokens
       carry user_id, email, iat and exp, with a fixed one-hour lifetime.
       verify() returns None on any failure -- bad signature, garbage input,
       missing or mistyped claims, expiry all look the same to the caller.

  Passwords: bcrypt directly. The _DUMMY_HASH constant enables timing
       equalization in authenticate_user() so response time does not reveal
       whether an email address is registered.

  Cookie: "accessToken", HttpOnly, SameSite=Lax, Path=/. max_age matches the
       token lifetime so both expire together. Logout re-sets it empty with
       Max-Age=0.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import TokenClaims
from core.config import get_settings

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import CredentialStore

logger = logging.getLogger("ticketdesk.auth")

ACCESS_TOKEN_COOKIE = "accessToken"
TOKEN_LIFETIME_SECONDS = 3600

_ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates input beyond 72 bytes; the API layer caps password
    length well below that.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the DB -- treat as a mismatch.
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("ticketdesk_timing_dummy")


# ---------------------------------------------------------------------------
# Token service
# ---------------------------------------------------------------------------


class TokenService:
    """Issue and verify signed, time-limited session tokens.

    Usage:
        tokens = TokenService(settings.secret_key)
        token = tokens.issue(user.id, user.email_professional)
        claims = tokens.verify(token)   # TokenClaims or None
    """

    def __init__(self, secret_key: str, expire_seconds: int = TOKEN_LIFETIME_SECONDS) -> None:
        if not secret_key:
            raise ValueError("TokenService requires a non-empty signing secret.")
        if expire_seconds <= 0:
            raise ValueError("expire_seconds must be positive.")
        self._secret_key = secret_key
        self.expire_seconds = expire_seconds

    def issue(self, user_id: int, email: str, now: datetime | None = None) -> str:
        """Encode a signed JWT for the given identity.

        Args:
            user_id: Numeric user ID stored in the DB.
            email:   Professional email, also used as the JWT subject.
            now:     Issuance time. Defaults to the current UTC time; tests
                     pass a past instant to mint already-expired tokens.
        """
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": email,
            "user_id": user_id,
            "email": email,
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=self.expire_seconds)).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def verify(self, token: str) -> TokenClaims | None:
        """Decode and verify a JWT. Returns the claims or None on any failure."""
        if not isinstance(token, str):
            return None
        try:
            # jose only checks exp when present; a token without one never expires.
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM], options={"require_exp": True})
        except JWTError as exc:
            logger.debug("Session token rejected: %s", type(exc).__name__)
            return None
        user_id = payload.get("user_id")
        email = payload.get("email")
        expires_at = payload.get("exp")
        # bool is an int subclass; a True user_id is not a user id.
        if not isinstance(user_id, int) or isinstance(user_id, bool) or not isinstance(email, str):
            return None
        if not isinstance(expires_at, int):
            return None
        return TokenClaims(
            user_id=user_id,
            email=email,
            issued_at=int(payload.get("iat", 0)),
            expires_at=expires_at,
        )


@lru_cache
def get_token_service() -> TokenService:
    """Return the process-wide TokenService built from Settings.

    Settings validation has already refused to start without a secret, so this
    never sees an empty key outside of misconfigured tests.
    """
    settings = get_settings()
    return TokenService(settings.secret_key, TOKEN_LIFETIME_SECONDS)


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: CredentialStore, email: str, password: str) -> User | None:
    """Authenticate an email/password login with timing equalization.

    Always runs bcrypt whether or not the user exists:
    - Unknown email: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Returns the User on success, None on any failure.
    """
    user = store.get_by_email(email)
    if user is None or user.hashed_password is None:
        verify_password(password, _DUMMY_HASH)
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = TOKEN_LIFETIME_SECONDS) -> None:
    """Write the session token as an httpOnly cookie on the response.

    secure is only set when SECURE_COOKIES=true (production behind HTTPS).
    """
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        path="/",
        secure=get_settings().secure_cookies,
        max_age=expire_seconds,
    )


def clear_auth_cookie(response) -> None:
    """Overwrite the session cookie with an empty, immediately-expired value."""
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        value="",
        httponly=True,
        samesite="lax",
        path="/",
        max_age=0,
    )
