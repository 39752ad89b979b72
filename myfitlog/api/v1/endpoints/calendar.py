"""Exercise calendar endpoint."""

import logging
from collections import defaultdict
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from myfitlog.api.v1.endpoints.auth import get_backend, get_current_context
from myfitlog.api.v1.endpoints.exercises import ExerciseRecordResponse, to_record_response
from myfitlog.services.backend import BackendError, FitnessBackend, SessionContext
from myfitlog.services.month_grid import (
    build_month_grid,
    local_today,
    next_month,
    previous_month,
    start_of_month,
)

logger = logging.getLogger(__name__)
router = APIRouter()


class CalendarCellSchema(BaseModel):
    date: date
    in_current_month: bool
    is_selected: bool
    has_record: bool

    model_config = {"from_attributes": True}


class CalendarResponse(BaseModel):
    """One month view plus the records of the selected day.

    `previous_month` / `next_month` are the `month` values for navigation.
    """

    month: date
    previous_month: date
    next_month: date
    selected_date: date
    cells: list[CalendarCellSchema]
    selected_records: list[ExerciseRecordResponse]
    notifications: list[str]


@router.get("", response_model=CalendarResponse)
async def get_calendar(
    context: Annotated[SessionContext, Depends(get_current_context)],
    backend: Annotated[FitnessBackend, Depends(get_backend)],
    month: date | None = Query(None, description="Any day in the month to show (defaults to today)"),
    selected: date | None = Query(None, description="Selected day (defaults to today)"),
) -> CalendarResponse:
    """Get the month grid with record markers and the selected day's records."""
    today = local_today()
    reference = start_of_month(month or today)
    selected_date = selected or today
    notifications: list[str] = []

    records_by_date: dict[date, list[ExerciseRecordResponse]] = defaultdict(list)
    try:
        records = await backend.list_records_for_user(context.user_id)
    except BackendError as e:
        logger.warning("Calendar records unavailable for user %s: %s", context.user_id, e)
        notifications.append("Failed to fetch exercise records")
    else:
        for record in records:
            records_by_date[record.date].append(to_record_response(record))

    cells = build_month_grid(
        reference,
        selected_date,
        has_record_on_date=lambda day: day in records_by_date,
    )

    return CalendarResponse(
        month=reference,
        previous_month=previous_month(reference),
        next_month=next_month(reference),
        selected_date=selected_date,
        cells=[CalendarCellSchema.model_validate(c) for c in cells],
        selected_records=records_by_date.get(selected_date, []),
        notifications=notifications,
    )
