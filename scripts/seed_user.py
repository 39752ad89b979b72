#!/usr/bin/env python3
"""Seed script to create MyFitLog accounts without the signup page.

Usage:
    # Interactive mode
    python scripts/seed_user.py

    # Command line mode
    python scripts/seed_user.py --email user@example.com --password secret123 --name "User Name"

    # From settings (ADMIN_EMAIL / ADMIN_PASSWORD / ADMIN_DISPLAY_NAME)
    ADMIN_EMAIL=user@example.com ADMIN_PASSWORD=secret123 python scripts/seed_user.py

    # With a weekly goal
    python scripts/seed_user.py --email user@example.com --goal-minutes 150
"""

import argparse
import asyncio
import getpass
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select

from myfitlog.core.config import get_settings
from myfitlog.core.database import async_session_maker
from myfitlog.core.security import get_password_hash
from myfitlog.models import DEFAULT_GOAL_TYPE, Goal, User

logger = logging.getLogger("seed_user")

MIN_PASSWORD_LENGTH = 6


async def create_user(
    email: str,
    password: str,
    display_name: str | None = None,
    goal_minutes: int | None = None,
) -> User:
    """Create a new user, optionally with a weekly goal.

    Raises:
        ValueError: If a user with the email already exists.
    """
    async with async_session_maker() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none():
            raise ValueError(f"User with email '{email}' already exists")

        user = User(
            email=email,
            password_hash=get_password_hash(password),
            display_name=display_name,
        )
        session.add(user)
        await session.flush()

        if goal_minutes:
            session.add(
                Goal(
                    user_id=user.id,
                    goal_type=DEFAULT_GOAL_TYPE,
                    target_minutes=goal_minutes,
                )
            )

        await session.commit()
        await session.refresh(user)
        return user


async def list_users() -> list[User]:
    async with async_session_maker() as session:
        result = await session.execute(select(User).order_by(User.id))
        return list(result.scalars().all())


def get_password_interactive() -> str:
    """Prompt for a password with confirmation.

    Raises:
        ValueError: If the passwords differ or the password is too short.
    """
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")

    if password != confirm:
        raise ValueError("Passwords do not match")

    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    return password


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    parser = argparse.ArgumentParser(description="Create MyFitLog user accounts")
    parser.add_argument("--email", help="User email address", default=settings.admin_email)
    parser.add_argument(
        "--password",
        help="User password (or use ADMIN_PASSWORD env var)",
        default=settings.admin_password,
    )
    parser.add_argument("--name", help="Display name", default=settings.admin_display_name)
    parser.add_argument("--goal-minutes", type=int, help="Weekly exercise goal in minutes")
    parser.add_argument("--list", action="store_true", help="List existing users")

    args = parser.parse_args()

    if args.list:
        users = await list_users()
        if not users:
            print("No users found")
        for user in users:
            print(f"{user.id}\t{user.email}\t{user.display_name or '(not set)'}\t{user.created_at}")
        return

    if not args.email:
        args.email = input("Email: ").strip()
        if not args.email:
            print("Error: Email is required")
            sys.exit(1)

    if not args.password:
        try:
            args.password = get_password_interactive()
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

    if args.name is None:
        args.name = input("Display name (optional): ").strip() or None

    try:
        user = await create_user(
            email=args.email,
            password=args.password,
            display_name=args.name,
            goal_minutes=args.goal_minutes,
        )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    logger.info("Created user %s (%s)", user.id, user.email)
    print(f"User created: id={user.id} email={user.email}")


if __name__ == "__main__":
    asyncio.run(main())
