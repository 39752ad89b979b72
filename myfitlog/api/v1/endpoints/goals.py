"""Weekly goal endpoints.

Progress counts minutes recorded since the start of the current week
(Sunday, in the application timezone).
"""

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from myfitlog.api.v1.endpoints.auth import get_backend, get_current_context
from myfitlog.api.v1.errors import http_error_for
from myfitlog.models.goal import DEFAULT_GOAL_TYPE
from myfitlog.services.backend import BackendError, FitnessBackend, SessionContext
from myfitlog.services.month_grid import local_today, start_of_week

router = APIRouter()


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class GoalProgressResponse(BaseModel):
    """Goal with this week's progress."""

    id: int
    goal_type: str
    target_minutes: int
    current_minutes: int
    progress_percent: float
    week_start: date


class GoalResponse(BaseModel):
    """`goal` is null until the user sets one."""

    goal: GoalProgressResponse | None


class GoalUpdateRequest(BaseModel):
    goal_type: str = Field(DEFAULT_GOAL_TYPE, min_length=1, max_length=100)
    target_minutes: int = Field(..., gt=0, description="Target minutes per week")


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


async def load_goal_progress(
    backend: FitnessBackend,
    user_id: int,
    today: date,
) -> Optional[GoalProgressResponse]:
    """Read the user's goal and sum this week's minutes.

    Returns None when no goal has been set.

    Raises:
        BackendError: If either read fails.
    """
    goal = await backend.get_goal_for_user(user_id)
    if goal is None:
        return None

    week_start = start_of_week(today)
    current = await backend.sum_duration_since_week_start(user_id, week_start)
    percent = round(current / goal.target_minutes * 100, 1) if goal.target_minutes else 0.0

    return GoalProgressResponse(
        id=goal.id,
        goal_type=goal.goal_type,
        target_minutes=goal.target_minutes,
        current_minutes=current,
        progress_percent=percent,
        week_start=week_start,
    )


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("", response_model=GoalResponse)
async def get_goal(
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
) -> GoalResponse:
    """Get the current goal and this week's progress."""
    try:
        goal = await load_goal_progress(backend, context.user_id, local_today())
    except BackendError as e:
        raise http_error_for(e, "Failed to fetch goal")

    return GoalResponse(goal=goal)


@router.put("", response_model=GoalResponse)
async def set_goal(
    request: GoalUpdateRequest,
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
) -> GoalResponse:
    """Create or update the goal, then return refreshed progress."""
    try:
        await backend.upsert_goal(context.user_id, request.goal_type, request.target_minutes)
    except BackendError as e:
        raise http_error_for(e, "Failed to update goal")

    try:
        goal = await load_goal_progress(backend, context.user_id, local_today())
    except BackendError as e:
        raise http_error_for(e, "Failed to fetch goal")

    return GoalResponse(goal=goal)
