"""API v1 router aggregating all endpoint routers.

Authentication:
  /api/v1/auth/signup, /login, /logout, /me

Dashboard:
  /api/v1/dashboard

Goals:
  /api/v1/goals (get, upsert)

Exercises:
  /api/v1/exercises (list, save), /types, /estimate

Stopwatch:
  /api/v1/stopwatch, /start, /stop, /reset, /exercise, /save

Calendar:
  /api/v1/calendar
"""

from fastapi import APIRouter

from myfitlog.api.v1.endpoints import (
    auth,
    calendar,
    dashboard,
    exercises,
    goals,
    stopwatch,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
api_router.include_router(goals.router, prefix="/goals", tags=["goals"])
api_router.include_router(exercises.router, prefix="/exercises", tags=["exercises"])
api_router.include_router(stopwatch.router, prefix="/stopwatch", tags=["stopwatch"])
api_router.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
