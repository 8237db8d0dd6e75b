"""
auth/store.py -- SQLAlchemy Core persistence layer for the credential store.

Pattern: Repository + Data Mapper. CredentialStore is the repository;
_row_to_user / _row_to_group are the mappers. Resolver and route code never
touches SQL directly.

Tables:
  users        -- identities, bcrypt hashes, global admin flag
  locations    -- organizational sites, unique by name
  groups       -- dotted-path group names, optionally tied to a location
  group_users  -- (user, group, is_admin) memberships, one row per pair

Failure policy:
  Any SQLAlchemyError raised while talking to the database is logged and
  re-raised as auth.errors.Transient, so a store outage can never be read as
  "no memberships" (fail open) or "access denied" (wrong reason). Integrity
  violations on writes are the exception: they propagate unchanged so the
  caller can turn a duplicate into a conflict message.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    event,
    func,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import Transient
from auth.models import Group, GroupMembership, Location, User

logger = logging.getLogger("ticketdesk.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_locations = Table(
    "locations",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
)

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("first_name", String(255), nullable=False),
    Column("last_name", String(255), nullable=False),
    Column("email_professional", String(255), nullable=False, unique=True),
    Column("hashed_password", Text),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    Column("must_change_password", Integer, nullable=False, server_default="1"),
    Column("location_id", Integer),  # home location, optional
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32)),
)

_groups = Table(
    "groups",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("group_name", String(255), nullable=False, unique=True),
    Column("description", Text),
    # Not unique: several groups may be attached to the same location.
    Column("location_id", Integer),
    Column("owner_id", Integer),
)

_group_users = Table(
    "group_users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("group_id", Integer, nullable=False),
    Column("is_admin", Integer, nullable=False, server_default="0"),
    UniqueConstraint("user_id", "group_id", name="uq_group_user"),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers never block on a concurrent write.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _group_select():
    """SELECT for groups with their (optional) location joined in."""
    return select(
        _groups.c.id,
        _groups.c.group_name,
        _groups.c.description,
        _groups.c.owner_id,
        _locations.c.id.label("location_id"),
        _locations.c.name.label("location_name"),
    ).select_from(_groups.outerjoin(_locations, _groups.c.location_id == _locations.c.id))


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for users, locations, groups and memberships.

    Usage:
        store = CredentialStore("sqlite:///ticketdesk_auth.db")
        loc_id = store.create_location("Liège")
        group_id = store.create_group("Gestion.Groupes.Liège", location_id=loc_id)
        store.add_member(user_id, group_id, is_admin=True)
        store.memberships_of(user_id)
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection; translate driver failures into Transient."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Credential store unavailable")
            raise Transient() from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(select(1))
        except Transient:
            return False
        return True

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a user and return its ID.

        Raises sqlalchemy.exc.IntegrityError if the professional email is taken.
        """
        with self._connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    first_name=user.first_name,
                    last_name=user.last_name,
                    email_professional=user.email_professional,
                    hashed_password=user.hashed_password,
                    is_admin=1 if user.is_admin else 0,
                    must_change_password=1 if user.must_change_password else 0,
                    location_id=user.location_id,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_by_id(self, user_id: int) -> User | None:
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by exact professional email. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email_professional == email)).fetchone()
        return _row_to_user(row) if row is not None else None

    def email_exists(self, email: str) -> bool:
        with self._connect() as conn:
            count = conn.execute(
                select(func.count()).select_from(_users).where(_users.c.email_professional == email)
            ).scalar()
        return (count or 0) > 0

    def update_password(self, user_id: int, hashed_password: str) -> bool:
        """Store a new hash and clear must_change_password. False if user_id is unknown."""
        with self._connect() as conn:
            result = conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(hashed_password=hashed_password, must_change_password=0, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def create_location(self, name: str) -> int:
        with self._connect() as conn:
            result = conn.execute(_locations.insert().values(name=name))
            conn.commit()
            return result.inserted_primary_key[0]

    def get_location_by_name(self, name: str) -> Location | None:
        with self._connect() as conn:
            row = conn.execute(_locations.select().where(_locations.c.name == name)).fetchone()
        return Location(id=row.id, name=row.name) if row is not None else None

    def list_locations(self) -> list[Location]:
        """Return every location ordered by name."""
        with self._connect() as conn:
            rows = conn.execute(_locations.select().order_by(_locations.c.name)).fetchall()
        return [Location(id=r.id, name=r.name) for r in rows]

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(
        self,
        group_name: str,
        description: str | None = None,
        location_id: int | None = None,
        owner_id: int | None = None,
    ) -> int:
        """Insert a group and return its ID. IntegrityError if the name is taken."""
        with self._connect() as conn:
            result = conn.execute(
                _groups.insert().values(
                    group_name=group_name,
                    description=description,
                    location_id=location_id,
                    owner_id=owner_id,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_group(self, group_id: int) -> Group | None:
        with self._connect() as conn:
            row = conn.execute(_group_select().where(_groups.c.id == group_id)).fetchone()
        return _row_to_group(row) if row is not None else None

    def get_group_by_name(self, group_name: str) -> Group | None:
        with self._connect() as conn:
            row = conn.execute(_group_select().where(_groups.c.group_name == group_name)).fetchone()
        return _row_to_group(row) if row is not None else None

    def list_groups_by_location(self, location_id: int) -> list[Group]:
        """Return the groups attached to a location, ordered by group name."""
        with self._connect() as conn:
            rows = conn.execute(
                _group_select().where(_groups.c.location_id == location_id).order_by(_groups.c.group_name)
            ).fetchall()
        return [_row_to_group(r) for r in rows]

    # ------------------------------------------------------------------
    # Memberships
    # ------------------------------------------------------------------

    def add_member(self, user_id: int, group_id: int, is_admin: bool = False) -> int:
        """Insert a membership row. IntegrityError if (user, group) already exists."""
        with self._connect() as conn:
            result = conn.execute(
                _group_users.insert().values(user_id=user_id, group_id=group_id, is_admin=1 if is_admin else 0)
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def is_member(self, user_id: int, group_id: int) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                select(_group_users.c.id).where(
                    (_group_users.c.user_id == user_id) & (_group_users.c.group_id == group_id)
                )
            ).fetchone()
        return row is not None

    def memberships_of(self, user_id: int) -> list[GroupMembership]:
        """Return every membership of a user with group and location joined, ordered by group name."""
        query = (
            select(
                _group_users.c.user_id,
                _group_users.c.is_admin,
                _groups.c.id,
                _groups.c.group_name,
                _groups.c.description,
                _groups.c.owner_id,
                _locations.c.id.label("location_id"),
                _locations.c.name.label("location_name"),
            )
            .select_from(
                _group_users.join(_groups, _group_users.c.group_id == _groups.c.id).outerjoin(
                    _locations, _groups.c.location_id == _locations.c.id
                )
            )
            .where(_group_users.c.user_id == user_id)
            .order_by(_groups.c.group_name)
        )
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [
            GroupMembership(user_id=r.user_id, group=_row_to_group(r), is_admin=bool(r.is_admin)) for r in rows
        ]

    def list_group_members(self, group_id: int) -> list[tuple[User, bool]]:
        """Return (user, is_admin) pairs for a group, ordered by last then first name."""
        query = (
            select(_users, _group_users.c.is_admin.label("membership_is_admin"))
            .select_from(_group_users.join(_users, _group_users.c.user_id == _users.c.id))
            .where(_group_users.c.group_id == group_id)
            .order_by(_users.c.last_name, _users.c.first_name)
        )
        with self._connect() as conn:
            rows = conn.execute(query).fetchall()
        return [(_row_to_user(r), bool(r.membership_is_admin)) for r in rows]

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        first_name=row.first_name,
        last_name=row.last_name,
        email_professional=row.email_professional,
        hashed_password=row.hashed_password,
        is_admin=bool(row.is_admin),
        must_change_password=bool(row.must_change_password),
        location_id=row.location_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_group(row) -> Group:
    location = None
    if row.location_id is not None:
        location = Location(id=row.location_id, name=row.location_name)
    return Group(
        id=row.id,
        group_name=row.group_name,
        description=row.description,
        location=location,
        owner_id=row.owner_id,
    )
