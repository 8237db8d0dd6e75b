"""
auth/gate.py -- Navigation gate for browser page loads.

This is the cheap edge check, not an authorization decision. It only asks
"is there an accessToken cookie at all?". A forged or expired cookie passes
here; the API routes behind the pages run the real verification through
SessionResolver. Keep the two apart -- has_session_cookie() must never be
used to guard data.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Mapping

from auth.tokens import ACCESS_TOKEN_COOKIE

LOGIN_PATH = "/login"

PROTECTED_PATH_PREFIXES: tuple[str, ...] = (
    "/dashboard",
    "/incidents",
    "/tasks",
    "/groupes",
    "/outils",
    "/annuaire",
)


def is_protected_path(path: str) -> bool:
    """Literal prefix test, same as the page router: "/tasks-archive" is protected too."""
    return path.startswith(PROTECTED_PATH_PREFIXES)


def has_session_cookie(cookies: Mapping[str, str]) -> bool:
    """Presence-only check. Does not verify signature or expiry."""
    return bool(cookies.get(ACCESS_TOKEN_COOKIE))


def needs_login_redirect(path: str, cookies: Mapping[str, str]) -> bool:
    return is_protected_path(path) and not has_session_cookie(cookies)
