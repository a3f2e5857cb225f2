#!/usr/bin/env python3
"""Management helpers for users and remember-me tokens."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, Iterable

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from secureauth import database  # noqa: E402
from secureauth.auth.models import User  # noqa: E402
from secureauth.auth.passwords import hash_password  # noqa: E402
from secureauth.auth.service import (  # noqa: E402
    build_authenticator,
    create_user,
    init_auth_storage,
    normalize_username,
    record_audit_event,
    set_user_activated,
)
from secureauth.config import settings  # noqa: E402
from sqlmodel import select  # noqa: E402


def _log_system_event(action: str, summary: str, data: Dict[str, object] | None = None) -> None:
    with database.SessionLocal() as session:
        record_audit_event(
            session,
            actor_id=None,
            action=action,
            summary=summary,
            data=data or {},
            commit=True,
        )


def _command_create_user(args: argparse.Namespace) -> int:
    init_auth_storage()
    username = normalize_username(args.username)
    with database.SessionLocal() as session:
        existing = session.exec(select(User).where(User.username == username)).first()
        if existing:
            if not args.force:
                print(f"User '{username}' already exists; skipping")
                return 0
            existing.hashed_password = hash_password(args.password)
            session.add(existing)
            session.commit()
            session.refresh(existing)
            _log_system_event(
                "password_reset",
                f"Reset password for {existing.username}",
                {"user_id": existing.id},
            )
            print(f"Updated password for existing user '{existing.username}'")
            return 0

        user = create_user(
            session,
            username,
            args.password,
            email=args.email,
            activated=not args.inactive,
        )
        _log_system_event(
            "user_created",
            f"Created user {user.username}",
            {"user_id": user.id, "activated": user.activated},
        )
        print(f"Created user '{user.username}' (id={user.id})")
        return 0


def _command_set_activated(args: argparse.Namespace) -> int:
    init_auth_storage()
    activated = args.state == "on"
    with database.SessionLocal() as session:
        user = set_user_activated(session, args.username, activated)
    if user is None:
        print(f"User '{args.username}' not found", file=sys.stderr)
        return 1
    _log_system_event(
        "user_activated" if activated else "user_deactivated",
        f"Set activated={activated} for {user.username}",
        {"user_id": user.id},
    )
    print(f"User '{user.username}' activated={activated}")
    return 0


def _command_clean_tokens(args: argparse.Namespace) -> int:
    init_auth_storage()
    cutoff = build_authenticator().clean_expired()
    _log_system_event(
        "autologin_cleaned",
        "Removed expired autologin tokens",
        {"cutoff": cutoff.isoformat()},
    )
    print(f"Removed autologin tokens issued before {cutoff.isoformat()}")
    return 0


def _command_revoke_tokens(args: argparse.Namespace) -> int:
    init_auth_storage()
    username = normalize_username(args.username)
    with database.SessionLocal() as session:
        user = session.exec(select(User).where(User.username == username)).first()
    if user is None or user.id is None:
        print(f"User '{username}' not found", file=sys.stderr)
        return 1
    build_authenticator().tokens.purge(user.id)
    _log_system_event(
        "autologin_revoked",
        f"Revoked remembered devices for {user.username}",
        {"user_id": user.id},
    )
    print(f"Revoked all remembered devices for '{user.username}'")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--database-url",
        dest="database_url",
        help="Override the authentication database URL",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-user", help="Create a user or reset its password")
    create.add_argument("--username", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--email")
    create.add_argument(
        "--inactive",
        action="store_true",
        help="Create the account without activating it",
    )
    create.add_argument(
        "--force",
        action="store_true",
        help="Update the password if the user already exists",
    )
    create.set_defaults(func=_command_create_user)

    activate = subparsers.add_parser("set-activated", help="Activate or deactivate a user")
    activate.add_argument("--username", required=True)
    activate.add_argument("state", choices=["on", "off"])
    activate.set_defaults(func=_command_set_activated)

    clean = subparsers.add_parser(
        "clean-tokens",
        help="Delete autologin tokens older than the cookie lifetime",
    )
    clean.set_defaults(func=_command_clean_tokens)

    revoke = subparsers.add_parser(
        "revoke-tokens",
        help="Forget every remembered device of a user",
    )
    revoke.add_argument("--username", required=True)
    revoke.set_defaults(func=_command_revoke_tokens)

    return parser


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.database_url:
        database.reset_session_factory(args.database_url)
        settings.AUTH_DB_URL = args.database_url

    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
