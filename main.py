#!/usr/bin/env python3
"""
NileGuide Auth -- operator commands for account lifecycle.

The HTTP API only creates Tourist accounts and never deactivates or deletes
anything. These commands cover the rest, against the same database and with
the same Settings as the API.

Usage:
  python main.py create-admin admin@example.com --full-name "Site Admin" --nationality EG
  python main.py deactivate user@example.com
  python main.py soft-delete user@example.com

Environment variables:
  SECRET_KEY    Required unless DEBUG=true (same rules as the API).
  DATABASE_URL  SQLAlchemy URL of the credential store.
"""

import argparse
import getpass
import sys
from datetime import datetime, timezone

from auth.errors import ConflictError
from auth.models import Account, Role
from auth.passwords import PasswordHasher
from auth.reset_codes import normalize_email
from auth.store import CredentialStore
from core.config import ConfigurationError, get_settings


def _prompt_password() -> str:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        raise SystemExit("  [!] Passwords do not match.")
    if len(password) < 8:
        raise SystemExit("  [!] Password must be at least 8 characters.")
    return password


def create_admin(store: CredentialStore, hasher: PasswordHasher, args: argparse.Namespace) -> int:
    password = args.password if args.password is not None else _prompt_password()
    account = Account(
        email=normalize_email(args.email),
        password_hash=hasher.hash(password),
        full_name=args.full_name.strip(),
        nationality=args.nationality.strip(),
        role=Role.admin,
    )
    try:
        account_id = store.insert_account(account)
    except ConflictError:
        print(f"  [!] An account with email '{account.email}' already exists.")
        return 1
    print(f"  Created admin account {account_id} ({account.email}).")
    return 0


def _find(store: CredentialStore, email: str) -> Account | None:
    # active_only=False: operators must be able to act on already-deactivated accounts
    account = store.find_account_by_email(normalize_email(email), active_only=False)
    if account is None:
        print(f"  [!] No account with email '{normalize_email(email)}'.")
    return account


def deactivate(store: CredentialStore, args: argparse.Namespace) -> int:
    account = _find(store, args.email)
    if account is None:
        return 1
    store.update_account(account.id, is_active=False)
    print(f"  Deactivated account {account.id}.")
    return 0


def soft_delete(store: CredentialStore, args: argparse.Namespace) -> int:
    account = _find(store, args.email)
    if account is None:
        return 1
    if account.deleted_at is not None:
        print(f"  Account {account.id} was already deleted at {account.deleted_at.isoformat()}.")
        return 0
    store.update_account(account.id, deleted_at=datetime.now(timezone.utc))
    print(f"  Soft-deleted account {account.id}.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="NileGuide Auth account administration.")
    sub = parser.add_subparsers(dest="command", required=True)

    admin = sub.add_parser("create-admin", help="Create an Admin account.")
    admin.add_argument("email")
    admin.add_argument("--full-name", required=True)
    admin.add_argument("--nationality", required=True)
    # Hidden: lets scripts and tests skip the interactive prompt.
    admin.add_argument("--password", help=argparse.SUPPRESS)

    sub.add_parser("deactivate", help="Block an account from authenticating.").add_argument("email")
    sub.add_parser("soft-delete", help="Mark an account deleted without removing it.").add_argument("email")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(f"  [!] {exc}")
        return 2

    store = CredentialStore(settings.database_url)
    try:
        if args.command == "create-admin":
            return create_admin(store, PasswordHasher(rounds=settings.password_hash_rounds), args)
        if args.command == "deactivate":
            return deactivate(store, args)
        return soft_delete(store, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
