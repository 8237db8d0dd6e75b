"""Unit tests for auth/hierarchy.py -- prefix-scoped location authorization.

Covers:
- locations_under(): admin-only under Gestion.Groupes., any membership
  elsewhere, literal (not segment-aware) prefix matching, location-less
  groups skipped, stable de-duplication
- HierarchyAuthorizer.require_support_user(): deny without Support.*,
  allow with it, Unauthenticated without a session
- HierarchyAuthorizer.manageable_groups(): 400 / 404 / [] / group list
- store failures surface as Transient, never as AccessDenied
"""

import pytest
from sqlalchemy import create_engine

from auth.errors import AccessDenied, Malformed, NotFound, Transient, Unauthenticated
from auth.hierarchy import (
    RESTRICTED_ROOT,
    SUPPORT_ROOT,
    HierarchyAuthorizer,
    is_restricted,
    is_support_member,
    locations_under,
)
from auth.memberships import MembershipResolver, administered, belonging
from auth.models import Group, GroupMembership, Location
from auth.sessions import SessionResolver
from auth.store import CredentialStore
from auth.tokens import TokenService

SECRET = "hierarchy-test-secret-0123456789abcdef0123"

LIEGE = Location("Liège", id=1)
NAMUR = Location("Namur", id=2)


def _membership(name: str, location: Location | None, is_admin: bool = False) -> GroupMembership:
    return GroupMembership(user_id=1, group=Group(name, location=location), is_admin=is_admin)


class TestLocationsUnder:
    def test_restricted_root_ignores_plain_membership(self) -> None:
        memberships = [_membership("Gestion.Groupes.Liège", LIEGE)]
        assert locations_under(memberships, "Gestion.Groupes.") == []

    def test_restricted_root_counts_admin_membership(self) -> None:
        memberships = [_membership("Gestion.Groupes.Liège", LIEGE, is_admin=True)]
        assert locations_under(memberships, "Gestion.Groupes.") == ["Liège"]

    def test_restricted_deeper_prefix_is_still_admin_only(self) -> None:
        memberships = [
            _membership("Gestion.Groupes.Liège", LIEGE),
            _membership("Gestion.Groupes.Namur", NAMUR, is_admin=True),
        ]
        assert locations_under(memberships, "Gestion.Groupes.Namur") == ["Namur"]

    def test_other_roots_ignore_admin_flag(self) -> None:
        memberships = [_membership("Support.Reseau", NAMUR)]
        assert locations_under(memberships, "Support.") == ["Namur"]

    def test_duplicates_collapse_in_first_seen_order(self) -> None:
        memberships = [
            _membership("Support.Helpdesk", NAMUR),
            _membership("Support.Poste", LIEGE),
            _membership("Support.Reseau", NAMUR),
        ]
        assert locations_under(memberships, "Support.") == ["Namur", "Liège"]

    def test_location_less_group_contributes_nothing(self) -> None:
        memberships = [_membership("Support.Transversal", None)]
        assert locations_under(memberships, "Support.") == []

    def test_prefix_is_literal_not_segment_aware(self) -> None:
        memberships = [_membership("Gestion.Groupes.Liège", LIEGE, is_admin=True)]
        # "Gestion.Group" is not under the restricted root, so the admin flag
        # is not required, and it still matches "Gestion.Groupes.Liège".
        assert locations_under(memberships, "Gestion.Group") == ["Liège"]
        assert locations_under([_membership("Gestion.Groupes.Liège", LIEGE)], "Gestion.Group") == ["Liège"]

    def test_non_matching_prefix(self) -> None:
        memberships = [_membership("Informatique.Postes", LIEGE)]
        assert locations_under(memberships, "Support.") == []

    def test_empty_prefix_matches_everything(self) -> None:
        memberships = [_membership("Informatique.Postes", LIEGE), _membership("Support.Reseau", NAMUR)]
        assert locations_under(memberships, "") == ["Liège", "Namur"]

    def test_no_memberships(self) -> None:
        assert locations_under([], "Support.") == []


class TestPredicates:
    def test_is_restricted(self) -> None:
        assert is_restricted(RESTRICTED_ROOT)
        assert is_restricted("Gestion.Groupes.Liège")
        assert not is_restricted("Gestion.Group")
        assert not is_restricted(SUPPORT_ROOT)

    def test_is_support_member(self) -> None:
        assert is_support_member([_membership("Support.Reseau", NAMUR)])
        assert not is_support_member([_membership("Informatique.Postes", LIEGE)])
        assert not is_support_member([])

    def test_administered_keeps_admin_memberships(self) -> None:
        admin = _membership("Gestion.Groupes.Liège", LIEGE, is_admin=True)
        plain = _membership("Support.Reseau", NAMUR)
        assert administered([admin, plain]) == [admin]

    def test_belonging_keeps_plain_memberships(self) -> None:
        admin = _membership("Gestion.Groupes.Liège", LIEGE, is_admin=True)
        plain = _membership("Support.Reseau", NAMUR)
        assert belonging([admin, plain]) == [plain]
        assert belonging([admin]) == []


# ---------------------------------------------------------------------------
# HierarchyAuthorizer over a seeded store
# ---------------------------------------------------------------------------


@pytest.fixture
def tokens() -> TokenService:
    return TokenService(SECRET)


@pytest.fixture
def authorizer(tokens: TokenService, store: CredentialStore) -> HierarchyAuthorizer:
    return HierarchyAuthorizer(SessionResolver(tokens, store), MembershipResolver(store), store)


@pytest.fixture
def cookies_for(tokens: TokenService, directory):
    def _cookies(key: str) -> dict[str, str]:
        return {"accessToken": tokens.issue(directory.users[key], f"{key}@ticketdesk.test")}

    return _cookies


class TestAuthorizedLocations:
    def test_admin_of_guard_group(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        assert authorizer.authorized_locations(cookies_for("alice"), "Gestion.Groupes.") == ["Liège"]

    def test_plain_member_of_guard_group(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        assert authorizer.authorized_locations(cookies_for("bob"), "Gestion.Groupes.") == []

    def test_support_locations_deduplicated(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        assert authorizer.authorized_locations(cookies_for("carol"), "Support.") == ["Namur"]

    def test_unauthenticated(self, authorizer: HierarchyAuthorizer, directory) -> None:
        with pytest.raises(Unauthenticated):
            authorizer.authorized_locations({}, "Support.")


class TestRequireSupportUser:
    def test_support_member_is_allowed(self, authorizer: HierarchyAuthorizer, cookies_for, directory) -> None:
        user = authorizer.require_support_user(cookies_for("carol"))
        assert user.id == directory.users["carol"]

    def test_non_member_is_denied(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        with pytest.raises(AccessDenied):
            authorizer.require_support_user(cookies_for("bob"))

    def test_global_admin_flag_does_not_grant_support(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        with pytest.raises(AccessDenied):
            authorizer.require_support_user(cookies_for("dave"))

    def test_no_session(self, authorizer: HierarchyAuthorizer, directory) -> None:
        with pytest.raises(Unauthenticated):
            authorizer.require_support_user({"accessToken": "garbage"})


class TestManageableGroups:
    def test_missing_location(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        with pytest.raises(Malformed):
            authorizer.manageable_groups(cookies_for("alice"), None)
        with pytest.raises(Malformed):
            authorizer.manageable_groups(cookies_for("alice"), "")

    def test_unknown_location(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        with pytest.raises(NotFound):
            authorizer.manageable_groups(cookies_for("alice"), "Atlantis")

    def test_location_without_guard_group(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        assert authorizer.manageable_groups(cookies_for("alice"), "Mons") == []

    def test_not_a_guard_member(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        assert authorizer.manageable_groups(cookies_for("carol"), "Namur") == []

    def test_guard_admin_lists_location_groups(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        groups = authorizer.manageable_groups(cookies_for("alice"), "Liège")
        assert [g.group_name for g in groups] == ["Gestion.Groupes.Liège", "Informatique.Postes"]

    def test_plain_guard_member_lists_location_groups(self, authorizer: HierarchyAuthorizer, cookies_for) -> None:
        groups = authorizer.manageable_groups(cookies_for("bob"), "Namur")
        assert [g.group_name for g in groups] == ["Gestion.Groupes.Namur", "Support.Helpdesk", "Support.Reseau"]

    def test_guard_group_tied_to_another_location(
        self, authorizer: HierarchyAuthorizer, cookies_for, store: CredentialStore, directory
    ) -> None:
        store.create_group("Gestion.Groupes.Mons", location_id=directory.locations["Namur"])
        store.add_member(directory.users["alice"], store.get_group_by_name("Gestion.Groupes.Mons").id, is_admin=True)
        assert authorizer.manageable_groups(cookies_for("alice"), "Mons") == []

    def test_unauthenticated_before_validation(self, authorizer: HierarchyAuthorizer, directory) -> None:
        with pytest.raises(Unauthenticated):
            authorizer.manageable_groups({}, None)


class TestStoreFailure:
    def test_transient_is_not_turned_into_denial(
        self, authorizer: HierarchyAuthorizer, cookies_for, store: CredentialStore
    ) -> None:
        cookies = cookies_for("carol")
        store.engine = create_engine("sqlite:////nonexistent-dir/ticketdesk/none.db")
        with pytest.raises(Transient):
            authorizer.require_support_user(cookies)
        with pytest.raises(Transient):
            authorizer.authorized_locations(cookies, "Support.")
