"""Exercise record endpoints.

Paths:
  /api/v1/exercises (list, save a timed session)
  /api/v1/exercises/types, /estimate
"""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from myfitlog.api.v1.endpoints.auth import get_backend, get_current_context
from myfitlog.api.v1.errors import http_error_for
from myfitlog.services.backend import (
    BackendError,
    ExerciseRecordData,
    FitnessBackend,
    SessionContext,
)
from myfitlog.services.month_grid import local_today
from myfitlog.services.stopwatch import (
    DEFAULT_EXERCISE_TYPE,
    EXERCISE_TYPES,
    ExerciseType,
    UnknownExerciseTypeError,
    derive_record,
    estimate_energy,
    format_elapsed,
    get_exercise_type,
)

router = APIRouter()


# -------------------------------------------------------------------------
# Request/Response Models
# -------------------------------------------------------------------------


class ExerciseTypeSchema(BaseModel):
    key: str
    label: str
    met: float

    model_config = {"from_attributes": True}


class ExerciseTypesResponse(BaseModel):
    """Selectable exercise types; `default` is preselected in the stopwatch."""

    types: list[ExerciseTypeSchema]
    default: str


class ExerciseRecordResponse(BaseModel):
    """A saved exercise session."""

    id: int
    name: str
    duration_minutes: int
    calories: int
    date: date

    model_config = {"from_attributes": True}


class ExerciseListResponse(BaseModel):
    records: list[ExerciseRecordResponse]


class ExerciseSaveRequest(BaseModel):
    """A session timed on the client."""

    exercise_type: str = Field(DEFAULT_EXERCISE_TYPE.key, description="Exercise type key")
    elapsed_ms: int = Field(..., ge=0, description="Elapsed time in milliseconds")


class EstimateResponse(BaseModel):
    elapsed_ms: int
    formatted: str
    exercise_type: ExerciseTypeSchema
    calories: int


# -------------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------------


def resolve_exercise_type(key: str) -> ExerciseType:
    """Look up an exercise type or fail with 422."""
    try:
        return get_exercise_type(key)
    except UnknownExerciseTypeError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )


def to_record_response(record: ExerciseRecordData) -> ExerciseRecordResponse:
    return ExerciseRecordResponse.model_validate(record)


# -------------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------------


@router.get("/types", response_model=ExerciseTypesResponse)
async def list_exercise_types() -> ExerciseTypesResponse:
    """Get the exercise types with their MET values."""
    return ExerciseTypesResponse(
        types=[ExerciseTypeSchema.model_validate(t) for t in EXERCISE_TYPES],
        default=DEFAULT_EXERCISE_TYPE.key,
    )


@router.get("/estimate", response_model=EstimateResponse)
async def estimate(
    elapsed_ms: int = Query(..., ge=0, description="Elapsed time in milliseconds"),
    exercise_type: str = Query(DEFAULT_EXERCISE_TYPE.key, description="Exercise type key"),
) -> EstimateResponse:
    """Format elapsed time and estimate calories without saving anything."""
    selected = resolve_exercise_type(exercise_type)
    return EstimateResponse(
        elapsed_ms=elapsed_ms,
        formatted=format_elapsed(elapsed_ms),
        exercise_type=ExerciseTypeSchema.model_validate(selected),
        calories=estimate_energy(elapsed_ms, selected.met),
    )


@router.get("", response_model=ExerciseListResponse)
async def list_exercises(
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
    limit: int | None = Query(None, ge=1, le=500, description="Maximum records to return"),
) -> ExerciseListResponse:
    """Get the user's exercise records, newest first."""
    try:
        records = await backend.list_records_for_user(context.user_id, limit=limit)
    except BackendError as e:
        raise http_error_for(e, "Failed to fetch exercise records")

    return ExerciseListResponse(records=[to_record_response(r) for r in records])


@router.post("", response_model=ExerciseRecordResponse, status_code=status.HTTP_201_CREATED)
async def save_exercise(
    request: ExerciseSaveRequest,
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
) -> ExerciseRecordResponse:
    """Save a timed session as today's exercise record."""
    selected = resolve_exercise_type(request.exercise_type)
    draft = derive_record(request.elapsed_ms, selected, local_today())

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

    return ExerciseRecordResponse(
        id=record_id,
        name=draft.name,
        duration_minutes=draft.duration_minutes,
        calories=draft.calories,
        date=draft.date,
    )
