"""Server-held stopwatch endpoints.

Each user has one stopwatch ticking in this process. Ticks stop on
stop/reset/save and when the application shuts down.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from myfitlog.api.v1.endpoints.auth import (
    get_backend,
    get_current_context,
    get_stopwatch_registry,
)
from myfitlog.api.v1.endpoints.exercises import (
    ExerciseRecordResponse,
    ExerciseTypeSchema,
    resolve_exercise_type,
)
from myfitlog.api.v1.errors import http_error_for
from myfitlog.services.backend import BackendError, FitnessBackend, SessionContext
from myfitlog.services.month_grid import local_today
from myfitlog.services.stopwatch import Stopwatch, StopwatchRegistry

router = APIRouter()


class StopwatchResponse(BaseModel):
    status: str
    running: bool
    elapsed_ms: int
    formatted: str
    exercise_type: ExerciseTypeSchema
    calories: int


class ExerciseSelectRequest(BaseModel):
    exercise_type: str


class StopwatchSaveResponse(BaseModel):
    record: ExerciseRecordResponse
    stopwatch: StopwatchResponse


def get_user_stopwatch(
    context: Annotated[SessionContext, Depends(get_current_context)],
    registry: Annotated[StopwatchRegistry, Depends(get_stopwatch_registry)],
) -> Stopwatch:
    return registry.get(context.user_id)


def _state(stopwatch: Stopwatch) -> StopwatchResponse:
    return StopwatchResponse(**stopwatch.timer.to_dict())


@router.get("", response_model=StopwatchResponse)
async def get_stopwatch(
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
) -> StopwatchResponse:
    """Current elapsed time, formatted time and calorie estimate."""
    return _state(stopwatch)


@router.post("/start", response_model=StopwatchResponse)
async def start_stopwatch(
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
) -> StopwatchResponse:
    if stopwatch.timer.running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Stopwatch is already running",
        )
    stopwatch.start()
    return _state(stopwatch)


@router.post("/stop", response_model=StopwatchResponse)
async def stop_stopwatch(
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
) -> StopwatchResponse:
    if not stopwatch.timer.running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Stopwatch is not running",
        )
    await stopwatch.stop()
    return _state(stopwatch)


@router.post("/reset", response_model=StopwatchResponse)
async def reset_stopwatch(
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
) -> StopwatchResponse:
    """Back to 00:00.00 from any state."""
    await stopwatch.reset()
    return _state(stopwatch)


@router.put("/exercise", response_model=StopwatchResponse)
async def select_exercise(
    request: ExerciseSelectRequest,
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
) -> StopwatchResponse:
    """Change the exercise type; the calorie estimate follows immediately."""
    stopwatch.select_exercise(resolve_exercise_type(request.exercise_type))
    return _state(stopwatch)


@router.post("/save", response_model=StopwatchSaveResponse, status_code=status.HTTP_201_CREATED)
async def save_stopwatch(
    context: Annotated[SessionContext, Depends(get_current_context)],
    stopwatch: Annotated[Stopwatch, Depends(get_user_stopwatch)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
) -> StopwatchSaveResponse:
    """Save the timed session as today's record and reset the stopwatch.

    On failure the stopwatch keeps its time so the user can retry.
    """
    draft = stopwatch.timer.to_record(local_today())

    try:
        record_id = await backend.insert_record(
            context.user_id,
            draft.name,
            draft.duration_minutes,
            draft.calories,
            draft.date,
        )
    except BackendError as e:
        raise http_error_for(e, "Failed to save exercise record")

    await stopwatch.reset()

    return StopwatchSaveResponse(
        record=ExerciseRecordResponse(
            id=record_id,
            name=draft.name,
            duration_minutes=draft.duration_minutes,
            calories=draft.calories,
            date=draft.date,
        ),
        stopwatch=_state(stopwatch),
    )
