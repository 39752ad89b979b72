"""Persistence and session collaborator used by the API views.

Views depend on the `FitnessBackend` protocol only. `SqlAlchemyBackend` is the
production implementation (database + Redis session store); tests substitute
an in-memory fake with the same methods.
"""

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from typing import AsyncIterator, Optional, Protocol

from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from myfitlog.core.session import get_session
from myfitlog.models.exercise import ExerciseRecord
from myfitlog.models.goal import Goal
from myfitlog.models.user import User
from myfitlog.observability import get_metrics_backend, get_request_id

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Base exception for collaborator failures."""

    pass


class RecordNotFoundError(BackendError):
    """The requested user or row does not exist."""

    pass


class BackendConnectionError(BackendError):
    """The database or session store could not be reached."""

    pass


class UnauthenticatedError(BackendError):
    """No valid login session."""

    pass


@dataclass(frozen=True)
class SessionContext:
    """The signed-in user, resolved once per request and passed to views."""

    user_id: int
    display_name: str
    email: str


@dataclass(frozen=True)
class ExerciseRecordData:
    id: int
    name: str
    duration_minutes: int
    calories: int
    date: date


@dataclass(frozen=True)
class GoalData:
    id: int
    goal_type: str
    target_minutes: int


class FitnessBackend(Protocol):
    """Operations the views need from storage and auth."""

    async def get_current_session(self, session_id: Optional[str]) -> SessionContext:
        ...

    async def list_records_for_user(
        self,
        user_id: int,
        limit: Optional[int] = None,
    ) -> list[ExerciseRecordData]:
        ...

    async def get_goal_for_user(self, user_id: int) -> Optional[GoalData]:
        ...

    async def sum_duration_since_week_start(self, user_id: int, week_start: date) -> int:
        ...

    async def upsert_goal(self, user_id: int, goal_type: str, target_minutes: int) -> int:
        ...

    async def insert_record(
        self,
        user_id: int,
        name: str,
        duration_minutes: int,
        calories: int,
        record_date: date,
    ) -> int:
        ...


def _to_record_data(record: ExerciseRecord) -> ExerciseRecordData:
    return ExerciseRecordData(
        id=record.id,
        name=record.name,
        duration_minutes=record.duration_minutes,
        calories=record.calories,
        date=record.date,
    )


class SqlAlchemyBackend:
    """FitnessBackend over an async SQLAlchemy session and Redis sessions."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.metrics = get_metrics_backend()

    @asynccontextmanager
    async def _call(self, operation: str) -> AsyncIterator[None]:
        """Time a backend call and translate driver errors into BackendError."""
        start = time.perf_counter()
        success = False
        try:
            yield
            success = True
        except BackendError:
            raise
        except (DBAPIError, RedisError, OSError) as e:
            logger.error(
                "Backend call %s failed (request %s): %s", operation, get_request_id(), e
            )
            raise BackendConnectionError(f"{operation} failed: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                "Backend call %s failed (request %s): %s", operation, get_request_id(), e
            )
            raise BackendError(f"{operation} failed: {e}") from e
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.observe_backend_call(operation, success, duration_ms)

    async def _get_user(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_current_session(self, session_id: Optional[str]) -> SessionContext:
        if not session_id:
            raise UnauthenticatedError("Not authenticated")

        async with self._call("get_current_session"):
            session_data = await get_session(session_id)
            if not session_data:
                raise UnauthenticatedError("Session expired or invalid")

            user_id = session_data.get("user_id")
            if not user_id:
                raise UnauthenticatedError("Invalid session data")

            user = await self._get_user(user_id)
            if user is None:
                raise UnauthenticatedError("User not found")

        return SessionContext(
            user_id=user.id,
            display_name=user.display_name or "",
            email=user.email,
        )

    async def list_records_for_user(
        self,
        user_id: int,
        limit: Optional[int] = None,
    ) -> list[ExerciseRecordData]:
        async with self._call("list_records_for_user"):
            if await self._get_user(user_id) is None:
                raise RecordNotFoundError(f"User {user_id} not found")

            query = (
                select(ExerciseRecord)
                .where(ExerciseRecord.user_id == user_id)
                .order_by(ExerciseRecord.date.desc(), ExerciseRecord.id.desc())
            )
            if limit is not None:
                query = query.limit(limit)

            result = await self.db.execute(query)
            records = result.scalars().all()

        return [_to_record_data(r) for r in records]

    async def get_goal_for_user(self, user_id: int) -> Optional[GoalData]:
        async with self._call("get_goal_for_user"):
            result = await self.db.execute(select(Goal).where(Goal.user_id == user_id))
            goal = result.scalar_one_or_none()

        if goal is None:
            return None
        return GoalData(id=goal.id, goal_type=goal.goal_type, target_minutes=goal.target_minutes)

    async def sum_duration_since_week_start(self, user_id: int, week_start: date) -> int:
        async with self._call("sum_duration_since_week_start"):
            result = await self.db.execute(
                select(func.coalesce(func.sum(ExerciseRecord.duration_minutes), 0)).where(
                    ExerciseRecord.user_id == user_id,
                    ExerciseRecord.date >= week_start,
                )
            )
            total = result.scalar_one()

        return int(total)

    async def upsert_goal(self, user_id: int, goal_type: str, target_minutes: int) -> int:
        async with self._call("upsert_goal"):
            result = await self.db.execute(select(Goal).where(Goal.user_id == user_id))
            goal = result.scalar_one_or_none()

            if goal:
                goal.goal_type = goal_type
                goal.target_minutes = target_minutes
            else:
                goal = Goal(user_id=user_id, goal_type=goal_type, target_minutes=target_minutes)
                self.db.add(goal)

            await self.db.commit()
            await self.db.refresh(goal)

        logger.info("Goal saved for user %s: %s min", user_id, target_minutes)
        return goal.id

    async def insert_record(
        self,
        user_id: int,
        name: str,
        duration_minutes: int,
        calories: int,
        record_date: date,
    ) -> int:
        async with self._call("insert_record"):
            record = ExerciseRecord(
                user_id=user_id,
                name=name,
                duration_minutes=duration_minutes,
                calories=calories,
                date=record_date,
            )
            self.db.add(record)
            await self.db.commit()
            await self.db.refresh(record)

        logger.info(
            "Exercise saved for user %s: %s, %s min, %s kcal",
            user_id,
            name,
            duration_minutes,
            calories,
        )
        return record.id
