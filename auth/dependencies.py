"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The resolvers are built once in the API lifespan and stored on app.state;
these helpers fetch them and hand request.cookies over explicitly.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises Unauthenticated (401).
require_support_user() additionally requires a Support.* membership (403).

Errors are raised as auth.errors exceptions, not HTTPException; api/main.py
maps them onto the shared error envelope.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.hierarchy import HierarchyAuthorizer
from auth.models import User
from auth.sessions import SessionResolver
from auth.store import CredentialStore


def get_store(request: Request) -> CredentialStore:
    return request.app.state.credential_store


def get_session_resolver(request: Request) -> SessionResolver:
    return request.app.state.sessions


def get_authorizer(request: Request) -> HierarchyAuthorizer:
    return request.app.state.authorizer


def try_get_current_user(request: Request) -> User | None:
    """Resolve the session cookie to a User. Never raises for a bad token."""
    return get_session_resolver(request).resolve_current_user(request.cookies)


def get_current_user(request: Request) -> User:
    """Require authentication.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    return get_session_resolver(request).require_current_user(request.cookies)


def require_support_user(request: Request) -> User:
    """Require a Support.* group membership. 401 if unauthenticated, 403 otherwise."""
    return get_authorizer(request).require_support_user(request.cookies)
