"""
auth/sessions.py -- Resolve the calling user from the request's session cookie.

The cookie jar is passed in explicitly as a Mapping (request.cookies in
production, a plain dict in tests). Nothing here reads ambient request state.

Three distinct causes produce the same "no user" outcome:
  1. No accessToken cookie     -- the token service is not even called.
  2. Token fails verification  -- bad signature, malformed, or expired.
  3. Token is fine, user gone  -- deleted after the token was issued.

Resolution is read-only and never cached, so calling it twice in one request
yields the same answer both times.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Mapping

from auth.errors import Unauthenticated
from auth.memberships import MembershipResolver
from auth.models import AuthenticatedSession, User
from auth.store import CredentialStore
from auth.tokens import ACCESS_TOKEN_COOKIE, TokenService


class SessionResolver:
    def __init__(self, tokens: TokenService, store: CredentialStore) -> None:
        self._tokens = tokens
        self._store = store

    def resolve_current_user(self, cookies: Mapping[str, str]) -> User | None:
        """Return the authenticated User, or None. At most one store read."""
        token = cookies.get(ACCESS_TOKEN_COOKIE)
        if not token:
            return None
        claims = self._tokens.verify(token)
        if claims is None:
            return None
        return self._store.get_by_id(claims.user_id)

    def require_current_user(self, cookies: Mapping[str, str]) -> User:
        """Like resolve_current_user(), but raise Unauthenticated instead of returning None."""
        user = self.resolve_current_user(cookies)
        if user is None:
            raise Unauthenticated()
        return user

    def resolve_session(self, cookies: Mapping[str, str], memberships: MembershipResolver) -> AuthenticatedSession:
        """Build the per-request (user, memberships) projection.

        The user is resolved first; memberships are only loaded once identity
        is settled.
        """
        user = self.require_current_user(cookies)
        return AuthenticatedSession(user=user, memberships=tuple(memberships.memberships_of(user.id)))
