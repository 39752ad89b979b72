#!/usr/bin/env python3
"""Terminal stopwatch with live calorie estimate.

Commands (type and press Enter):
    s           start / stop
    r           reset
    t <key>     select exercise type (e.g. "t jogging")
    l           list exercise types
    w           save the session for --email and reset
    q           quit

Usage:
    python scripts/stopwatch.py --type jogging
    python scripts/stopwatch.py --email user@example.com
"""

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from myfitlog.core.config import get_settings
from myfitlog.core.database import async_session_maker
from myfitlog.models.user import User
from myfitlog.services.backend import BackendError, SqlAlchemyBackend
from myfitlog.services.month_grid import local_today
from myfitlog.services.stopwatch import (
    EXERCISE_TYPES,
    SessionTimer,
    Stopwatch,
    UnknownExerciseTypeError,
    get_exercise_type,
)

logger = logging.getLogger("stopwatch")

REFRESH_SECONDS = 0.1


def render(timer: SessionTimer) -> str:
    return f"{timer.formatted}  {timer.exercise_type.label}  {timer.calories} kcal  [{timer.status}]"


async def display(stopwatch: Stopwatch) -> None:
    while True:
        if stopwatch.timer.running:
            sys.stdout.write("\r" + render(stopwatch.timer) + "   ")
            sys.stdout.flush()
        await asyncio.sleep(REFRESH_SECONDS)


async def save(stopwatch: Stopwatch, email: str) -> None:
    """Insert the timed session for the user with `email`, then reset."""
    draft = stopwatch.timer.to_record(local_today())
    async with async_session_maker() as session:
        try:
            result = await session.execute(select(User).where(User.email == email))
            user = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error("User lookup failed for %s: %s", email, e)
            print(f"\nFailed to save exercise record: {e}")
            return

        if user is None:
            print(f"\nNo user with email {email}")
            return

        backend = SqlAlchemyBackend(session)
        try:
            record_id = await backend.insert_record(
                user.id,
                draft.name,
                draft.duration_minutes,
                draft.calories,
                draft.date,
            )
        except BackendError as e:
            # Keep the elapsed time so the save can be retried
            print(f"\nFailed to save exercise record: {e}")
            return

    await stopwatch.reset()
    logger.info("Saved record %s for %s", record_id, email)
    print(
        f"\nSaved record {record_id}: {draft.name}, "
        f"{draft.duration_minutes} min, {draft.calories} kcal on {draft.date}"
    )


async def handle(command: str, stopwatch: Stopwatch, email: str | None) -> bool:
    """Apply one command. Returns False to quit."""
    name, _, argument = command.strip().partition(" ")

    if name == "q":
        return False
    if name == "s":
        if stopwatch.timer.running:
            await stopwatch.stop()
        else:
            stopwatch.start()
    elif name == "r":
        await stopwatch.reset()
    elif name == "t":
        try:
            stopwatch.select_exercise(get_exercise_type(argument.strip()))
        except UnknownExerciseTypeError as e:
            print(e)
    elif name == "l":
        for exercise_type in EXERCISE_TYPES:
            print(f"  {exercise_type.key:<14} {exercise_type.label:<20} MET {exercise_type.met}")
    elif name == "w":
        if email is None:
            print("Pass --email to save sessions")
        else:
            await save(stopwatch, email)
    elif name:
        print(f"Unknown command: {name}")

    print(render(stopwatch.timer))
    return True


async def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    parser = argparse.ArgumentParser(description="MyFitLog terminal stopwatch")
    parser.add_argument("--type", default=EXERCISE_TYPES[0].key, help="Exercise type key")
    parser.add_argument("--email", help="Account that saved sessions belong to")
    args = parser.parse_args()

    try:
        exercise_type = get_exercise_type(args.type)
    except UnknownExerciseTypeError as e:
        print(f"Error: {e}")
        sys.exit(1)

    loop = asyncio.get_running_loop()
    async with Stopwatch(SessionTimer(exercise_type)) as stopwatch:
        display_task = loop.create_task(display(stopwatch))
        print(render(stopwatch.timer))
        try:
            while True:
                line = await loop.run_in_executor(None, sys.stdin.readline)
                if not line:
                    break
                if not await handle(line, stopwatch, args.email):
                    break
        finally:
            display_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await display_task


if __name__ == "__main__":
    asyncio.run(main())
