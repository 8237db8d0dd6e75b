#!/usr/bin/env python3
"""
TicketDesk -- provisioning CLI for the credential store.

Users, locations, groups and memberships are created here (or by the admin
tooling that sits outside this service); the API only reads them.

Usage:
  python main.py create-location Liège
  python main.py create-group Gestion.Groupes.Liège --location Liège
  python main.py create-user jdupont@example.be --first Jean --last Dupont
  python main.py add-member jdupont@example.be Gestion.Groupes.Liège --admin

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the credential store (default: SQLite file in auth/).
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.models import User
from auth.store import CredentialStore
from auth.tokens import hash_password
from core.config import get_settings


def _create_location(store: CredentialStore, args: argparse.Namespace) -> int:
    location_id = store.create_location(args.name)
    print(f"  Location '{args.name}' created (id={location_id}).")
    return 0


def _create_group(store: CredentialStore, args: argparse.Namespace) -> int:
    location_id: Optional[int] = None
    if args.location:
        location = store.get_location_by_name(args.location)
        if location is None:
            print(f"  [!] Unknown location '{args.location}'.")
            return 1
        location_id = location.id
    group_id = store.create_group(args.name, description=args.description, location_id=location_id)
    print(f"  Group '{args.name}' created (id={group_id}).")
    return 0


def _create_user(store: CredentialStore, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("  Initial password: ")
    if len(password) < 8:
        print("  [!] Password must be at least 8 characters.")
        return 1
    location_id: Optional[int] = None
    if args.location:
        location = store.get_location_by_name(args.location)
        if location is None:
            print(f"  [!] Unknown location '{args.location}'.")
            return 1
        location_id = location.id
    user = User(
        first_name=args.first,
        last_name=args.last,
        email_professional=args.email,
        hashed_password=hash_password(password),
        is_admin=args.admin,
        must_change_password=True,
        location_id=location_id,
    )
    user_id = store.create_user(user)
    print(f"  User {args.email} created (id={user_id}). They must change their password at first login.")
    return 0


def _add_member(store: CredentialStore, args: argparse.Namespace) -> int:
    user = store.get_by_email(args.email)
    if user is None:
        print(f"  [!] Unknown user '{args.email}'.")
        return 1
    group = store.get_group_by_name(args.group)
    if group is None:
        print(f"  [!] Unknown group '{args.group}'.")
        return 1
    store.add_member(user.id, group.id, is_admin=args.admin)
    role = "admin" if args.admin else "member"
    print(f"  {args.email} added to {args.group} as {role}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticketdesk",
        description="Provision users, locations, groups and memberships.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-location Namur
  python main.py create-group Support.Reseau --location Namur --description "Network support"
  python main.py create-user agent@example.be --first Ana --last Lopez --password 's3cret-pass'
  python main.py add-member agent@example.be Support.Reseau
        """,
    )
    parser.add_argument(
        "--database-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy URL of the credential store (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p = sub.add_parser("create-location", help="Create a location")
    p.add_argument("name", help="Unique location name")
    p.set_defaults(handler=_create_location)

    p = sub.add_parser("create-group", help="Create a group")
    p.add_argument("name", help="Dotted group name, e.g. Gestion.Groupes.Liège")
    p.add_argument("--location", metavar="NAME", help="Attach the group to this location")
    p.add_argument("--description", metavar="TEXT", default=None)
    p.set_defaults(handler=_create_group)

    p = sub.add_parser("create-user", help="Create a user")
    p.add_argument("email", help="Professional email (unique)")
    p.add_argument("--first", required=True, metavar="NAME")
    p.add_argument("--last", required=True, metavar="NAME")
    p.add_argument("--password", default=None, help="Initial password (prompted when omitted)")
    p.add_argument("--location", metavar="NAME", help="Home location")
    p.add_argument("--admin", action="store_true", help="Set the global admin flag")
    p.set_defaults(handler=_create_user)

    p = sub.add_parser("add-member", help="Add a user to a group")
    p.add_argument("email")
    p.add_argument("group")
    p.add_argument("--admin", action="store_true", help="Make the user admin of this group")
    p.set_defaults(handler=_add_member)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 0

    store = CredentialStore(args.database_url or get_settings().database_url)
    try:
        return args.handler(store, args)
    except IntegrityError:
        print("  [!] That record already exists.")
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
