#!/usr/bin/env python3
"""Create the first admin account.

Hey future me - self-service registration can't create admins, so a fresh deployment runs this
once. It is idempotent: when the email is already registered it prints the existing account and
exits 0 without touching it.

Usage:
    python scripts/create_admin.py --email admin@example.com --name "Admin User"
    # password from --password, or ADMIN_PASSWORD, or an interactive prompt

    # Or against another database:
    DATABASE_URL=sqlite+aiosqlite:///./other.db python scripts/create_admin.py ...
"""

import argparse
import asyncio
import getpass
import logging
import os
import sys

from soundshelf.application.services import AuthService, PasswordHasher, TokenService
from soundshelf.config import get_settings
from soundshelf.infrastructure.observability import configure_logging
from soundshelf.infrastructure.persistence import Database, UserRepository

logger = logging.getLogger("create_admin")

MIN_PASSWORD_LENGTH = 6


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a SoundShelf admin account")
    parser.add_argument("--email", default=os.environ.get("ADMIN_EMAIL"), required=False)
    parser.add_argument("--name", default=os.environ.get("ADMIN_NAME", "Admin User"))
    parser.add_argument("--password", default=os.environ.get("ADMIN_PASSWORD"))
    return parser.parse_args(argv)


async def create_admin(email: str, name: str, password: str) -> bool:
    """Create the admin; returns True when a new account was created."""
    settings = get_settings()
    db = Database(settings)
    try:
        await db.create_tables()
        async with db.session_scope() as session:
            service = AuthService(
                UserRepository(session),
                PasswordHasher(rounds=settings.auth.password_hash_rounds),
                TokenService.from_settings(settings.auth),
            )
            user, created = await service.bootstrap_admin(name, email, password)
    finally:
        await db.close()

    if created:
        logger.info(f"Admin account created: {user.email} ({user.id})")
    else:
        logger.warning(
            f"A user with email {user.email} already exists (role: {user.role.value}), "
            "nothing changed"
        )
    return created


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(log_level="INFO", json_format=False, app_name="create_admin")

    if not args.email:
        logger.error("An email is required (--email or ADMIN_EMAIL)")
        return 2
    password = args.password or getpass.getpass("Admin password: ")
    if len(password) < MIN_PASSWORD_LENGTH:
        logger.error(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
        return 2

    asyncio.run(create_admin(args.email, args.name, password))
    return 0


if __name__ == "__main__":
    sys.exit(main())
