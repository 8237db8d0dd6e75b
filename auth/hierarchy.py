"""
auth/hierarchy.py -- Prefix-scoped authorization over the group namespace.

Groups are named by dotted paths ("Gestion.Groupes.Liège", "Support.Reseau").
A prefix names a subtree, and the engine answers "which locations may the
current user see or manage under this subtree?".

Rules:
  - Prefix matching is a literal str.startswith() on the full group name. It
    is NOT segment-aware: "Gestion.Group" matches "Gestion.Groupes.X". Callers
    pass prefixes ending in "." when they mean a subtree.
  - If the prefix itself starts with RESTRICTED_ROOT, only memberships with
    is_admin=True count. Otherwise the admin flag is ignored.
  - Groups without a location contribute nothing.
  - Location names are de-duplicated, keeping first-seen order. Memberships
    arrive sorted by group name, so the result is deterministic.
  - An empty result is a normal answer, not an error.

RESTRICTED_ROOT and SUPPORT_ROOT are code constants. Changing them is a code
change, not a data change.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from auth.errors import AccessDenied, Malformed, NotFound
from auth.memberships import MembershipResolver, administered
from auth.models import Group, GroupMembership, User
from auth.sessions import SessionResolver
from auth.store import CredentialStore

logger = logging.getLogger("ticketdesk.auth.hierarchy")

RESTRICTED_ROOT = "Gestion.Groupes."
SUPPORT_ROOT = "Support."


def is_restricted(prefix: str) -> bool:
    return prefix.startswith(RESTRICTED_ROOT)


def locations_under(memberships: Iterable[GroupMembership], prefix: str) -> list[str]:
    """Return the location names reachable through memberships under prefix."""
    if is_restricted(prefix):
        memberships = administered(memberships)
    names: dict[str, None] = {}
    for membership in memberships:
        if not membership.group.group_name.startswith(prefix):
            continue
        location = membership.group.location
        if location is None:
            continue
        names.setdefault(location.name, None)
    return list(names)


def is_support_member(memberships: Iterable[GroupMembership]) -> bool:
    return any(m.group.group_name.startswith(SUPPORT_ROOT) for m in memberships)


class HierarchyAuthorizer:
    """Session-aware entry points over the pure functions above.

    Every method resolves the caller first (Unauthenticated if none) and only
    then loads memberships. Store failures surface as Transient from the store
    and are not caught here.
    """

    def __init__(
        self,
        sessions: SessionResolver,
        memberships: MembershipResolver,
        store: CredentialStore,
    ) -> None:
        self._sessions = sessions
        self._memberships = memberships
        self._store = store

    def authorized_locations(self, cookies: Mapping[str, str], prefix: str) -> list[str]:
        session = self._sessions.resolve_session(cookies, self._memberships)
        return locations_under(session.memberships, prefix)

    def require_support_user(self, cookies: Mapping[str, str]) -> User:
        """Return the caller if they belong to any Support.* group, else raise AccessDenied."""
        session = self._sessions.resolve_session(cookies, self._memberships)
        if not is_support_member(session.memberships):
            logger.info("Support access refused for user_id=%s", session.user.id)
            raise AccessDenied()
        return session.user

    def manageable_groups(self, cookies: Mapping[str, str], location_name: str | None) -> list[Group]:
        """List the groups of a location the caller may manage.

        The caller must be a member (admin or not) of the location's guard
        group, named RESTRICTED_ROOT + location name and tied to that
        location. Without that membership, or when no guard group exists, the
        answer is an empty list rather than an error.
        """
        user = self._sessions.require_current_user(cookies)
        if not location_name:
            raise Malformed("Parameter 'location' is required.")
        location = self._store.get_location_by_name(location_name)
        if location is None:
            raise NotFound("Unknown location.")

        guard = self._store.get_group_by_name(RESTRICTED_ROOT + location.name)
        if guard is None or guard.location_id != location.id:
            return []
        if not self._store.is_member(user.id, guard.id):
            return []
        return self._store.list_groups_by_location(location.id)
