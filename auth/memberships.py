"""
auth/memberships.py -- Load a user's group memberships.

No filtering happens here; callers narrow the list with administered(),
belonging() or their own predicate. Each membership carries its Group and
the Group's Location (or None), since authorization downstream is
location-centric.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from collections.abc import Iterable

from auth.models import GroupMembership
from auth.store import CredentialStore


class MembershipResolver:
    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    def memberships_of(self, user_id: int) -> list[GroupMembership]:
        """Return every membership of the user, ordered by group name."""
        return self._store.memberships_of(user_id)


def administered(memberships: Iterable[GroupMembership]) -> list[GroupMembership]:
    """Memberships where the user is admin of that group."""
    return [m for m in memberships if m.is_admin]


def belonging(memberships: Iterable[GroupMembership]) -> list[GroupMembership]:
    """Ordinary memberships, where the user is not admin of the group."""
    return [m for m in memberships if not m.is_admin]
