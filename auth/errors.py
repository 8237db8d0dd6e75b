"""
auth/errors.py -- Outcome taxonomy for the auth core.

Every operation in auth/ resolves to either a value or exactly one of these
exceptions. api/main.py maps them onto the shared ErrorResponse envelope using
the status_code and code attributes, so route handlers never build auth error
responses by hand.

Messages are deliberately generic. An AccessDenied never says which group or
rule was missing, and an Unauthenticated never says whether the cookie was
absent, forged, expired, or pointed at a deleted user.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class. Subclasses fix the HTTP status and machine-readable code."""

    status_code: int = 500
    code: str = "internal_error"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(AuthError):
    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class AccessDenied(AuthError):
    status_code = 403
    code = "forbidden"
    default_message = "Access denied."


class NotFound(AuthError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found."


class Malformed(AuthError):
    status_code = 400
    code = "bad_request"
    default_message = "Missing or invalid parameter."


class Transient(AuthError):
    """The credential store could not be reached. Safe for the caller to retry."""

    status_code = 500
    code = "store_unavailable"
    default_message = "The service is temporarily unavailable."
