"""
tests/conftest.py -- Shared test fixtures for TicketDesk.

This module provides:
  - seed_directory(): loads a small, fixed org chart into a CredentialStore
  - store: in-memory CredentialStore, seeded, one per test
  - api: module-scoped TestClient wired to an isolated shared-memory store
  - client: the api TestClient with an empty cookie jar for each test

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the API fixture because TestClient runs sync route handlers in a thread pool.
Plain :memory: DBs are per-connection and would present a blank schema to
each worker thread.

Environment variables must be set before any api/auth/core import so
get_settings() sees a fixed SECRET_KEY, a generous login rate limit, and the
TestClient host in ALLOWED_HOSTS.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SECRET_KEY", "test-secret-key-0123456789abcdef0123456789abcdef")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app, install_services
from auth.models import User
from auth.store import CredentialStore
from auth.tokens import get_token_service, hash_password

# Passwords are hashed once per session; bcrypt is deliberately slow.
PASSWORD = "correct-horse-battery"
_PASSWORD_HASH = hash_password(PASSWORD)


@dataclass
class Directory:
    """IDs of the seeded org chart, by readable key."""

    users: dict[str, int] = field(default_factory=dict)
    groups: dict[str, int] = field(default_factory=dict)
    locations: dict[str, int] = field(default_factory=dict)


def _user(first: str, last: str, email: str, **kwargs) -> User:
    return User(
        first_name=first,
        last_name=last,
        email_professional=email,
        hashed_password=_PASSWORD_HASH,
        **kwargs,
    )


def seed_directory(store: CredentialStore) -> Directory:
    """Load the fixed test org chart.

    Locations: Liège, Namur, Mons
    Groups:
      Gestion.Groupes.Liège   (Liège)   guard group for Liège
      Gestion.Groupes.Namur   (Namur)   guard group for Namur
      Informatique.Postes     (Liège)
      Support.Reseau          (Namur)
      Support.Helpdesk        (Namur)
      Support.Transversal     (none)
    Users:
      alice  -- admin of Gestion.Groupes.Liège, member of Support.Reseau
      bob    -- plain member of Gestion.Groupes.Namur and Informatique.Postes
      carol  -- member of Support.Reseau and Support.Helpdesk (both Namur)
      dave   -- no memberships; global admin flag set
    """
    d = Directory()
    for name in ("Liège", "Namur", "Mons"):
        d.locations[name] = store.create_location(name)

    for name, loc in (
        ("Gestion.Groupes.Liège", "Liège"),
        ("Gestion.Groupes.Namur", "Namur"),
        ("Informatique.Postes", "Liège"),
        ("Support.Reseau", "Namur"),
        ("Support.Helpdesk", "Namur"),
        ("Support.Transversal", None),
    ):
        d.groups[name] = store.create_group(
            name,
            description=f"{name} group",
            location_id=d.locations[loc] if loc else None,
        )

    d.users["alice"] = store.create_user(_user("Alice", "Martin", "alice@ticketdesk.test", must_change_password=False))
    d.users["bob"] = store.create_user(_user("Bob", "Dubois", "bob@ticketdesk.test"))
    d.users["carol"] = store.create_user(_user("Carol", "Lambert", "carol@ticketdesk.test", must_change_password=False))
    d.users["dave"] = store.create_user(_user("Dave", "Peeters", "dave@ticketdesk.test", is_admin=True))

    store.add_member(d.users["alice"], d.groups["Gestion.Groupes.Liège"], is_admin=True)
    store.add_member(d.users["alice"], d.groups["Support.Reseau"])
    store.add_member(d.users["bob"], d.groups["Gestion.Groupes.Namur"])
    store.add_member(d.users["bob"], d.groups["Informatique.Postes"])
    store.add_member(d.users["carol"], d.groups["Support.Reseau"])
    store.add_member(d.users["carol"], d.groups["Support.Helpdesk"])
    return d


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def password() -> str:
    """Plaintext password shared by every seeded user."""
    return PASSWORD


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    s = CredentialStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def directory(store: CredentialStore) -> Directory:
    return seed_directory(store)


# ---------------------------------------------------------------------------
# Integration fixtures
# ---------------------------------------------------------------------------


@dataclass
class ApiHarness:
    client: TestClient
    store: CredentialStore
    directory: Directory

    def token_for(self, key: str) -> str:
        user_id = self.directory.users[key]
        return get_token_service().issue(user_id, f"{key}@ticketdesk.test")

    def cookies_for(self, key: str) -> dict[str, str]:
        return {"accessToken": self.token_for(key)}


def _patch_lifespan(store: CredentialStore):
    """Return a lifespan that wires the test store instead of the real database."""

    @asynccontextmanager
    async def test_lifespan(app):
        install_services(app, store)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api(request) -> Generator[ApiHarness, None, None]:
    """Module-scoped TestClient over an isolated, seeded shared-memory store.

    follow_redirects=False so the navigation gate's 302s stay visible.
    """
    db_name = request.module.__name__.replace(".", "_")
    store = CredentialStore(f"sqlite:///file:test_auth_{db_name}?mode=memory&cache=shared&uri=true")
    directory = seed_directory(store)
    app.router.lifespan_context = _patch_lifespan(store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield ApiHarness(client=client, store=store, directory=directory)

    store.close()


@pytest.fixture
def client(api: ApiHarness) -> Generator[TestClient, None, None]:
    """The shared TestClient with a clean cookie jar, so a login in one test cannot authenticate the next."""
    api.client.cookies.clear()
    yield api.client
    api.client.cookies.clear()
