"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store maps rows
into these; the resolvers and the hierarchy engine read them. Nothing in the
auth core mutates a model after it has been loaded.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """An identity record owned by the credential store.

    is_admin is the global admin flag. It is unrelated to the per-group
    GroupMembership.is_admin flag, which is what the hierarchy engine checks.
    """

    first_name: str
    last_name: str
    email_professional: str
    id: int | None = None
    hashed_password: str | None = None
    is_admin: bool = False
    must_change_password: bool = True
    location_id: int | None = None  # home location
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class Location:
    name: str
    id: int | None = None


@dataclass(frozen=True)
class Group:
    """A node in the dot-separated group namespace, e.g. "Gestion.Groupes.Liège"."""

    group_name: str
    id: int | None = None
    description: str | None = None
    location: Location | None = None
    owner_id: int | None = None

    @property
    def location_id(self) -> int | None:
        return self.location.id if self.location is not None else None


@dataclass(frozen=True)
class GroupMembership:
    user_id: int
    group: Group
    is_admin: bool = False


@dataclass(frozen=True)
class TokenClaims:
    """The verified payload of a session token."""

    user_id: int
    email: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthenticatedSession:
    """Per-request read projection: who is calling and what they belong to.

    Built once per request by SessionResolver.resolve_session() and never
    cached across requests.
    """

    user: User
    memberships: tuple[GroupMembership, ...] = field(default_factory=tuple)
