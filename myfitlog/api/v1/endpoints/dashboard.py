"""Dashboard endpoint: recent activity and goal progress."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from myfitlog.api.v1.endpoints.auth import get_backend, get_current_context
from myfitlog.api.v1.endpoints.exercises import ExerciseRecordResponse, to_record_response
from myfitlog.api.v1.endpoints.goals import GoalProgressResponse, load_goal_progress
from myfitlog.core.config import get_settings
from myfitlog.services.backend import BackendError, FitnessBackend, SessionContext
from myfitlog.services.month_grid import local_today

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter()


class DashboardUser(BaseModel):
    user_id: int
    display_name: str
    email: str


class DashboardResponse(BaseModel):
    """Dashboard data.

    A failed section is left empty and explained in `notifications`; the rest
    of the dashboard is still returned.
    """

    user: DashboardUser
    recent_records: list[ExerciseRecordResponse]
    goal: GoalProgressResponse | None
    notifications: list[str]


@router.get("", response_model=DashboardResponse)
async def get_dashboard(
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
) -> DashboardResponse:
    """Get the user's most recent records and weekly goal progress."""
    notifications: list[str] = []

    recent: list[ExerciseRecordResponse] = []
    try:
        records = await backend.list_records_for_user(
            context.user_id,
            limit=settings.recent_records_limit,
        )
        recent = [to_record_response(r) for r in records]
    except BackendError as e:
        logger.warning("Dashboard records unavailable for user %s: %s", context.user_id, e)
        notifications.append("Failed to fetch exercise records")

    goal = None
    try:
        goal = await load_goal_progress(backend, context.user_id, local_today())
    except BackendError as e:
        logger.warning("Dashboard goal unavailable for user %s: %s", context.user_id, e)
        notifications.append("Failed to fetch goal")

    return DashboardResponse(
        user=DashboardUser(
            user_id=context.user_id,
            display_name=context.display_name,
            email=context.email,
        ),
        recent_records=recent,
        goal=goal,
        notifications=notifications,
    )
