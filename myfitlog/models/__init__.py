"""Database models for MyFitLog."""

from myfitlog.models.user import User
from myfitlog.models.exercise import ExerciseRecord
from myfitlog.models.goal import DEFAULT_GOAL_TYPE, Goal

__all__ = [
    # User
    "User",
    # Exercise
    "ExerciseRecord",
    # Goal
    "Goal",
    "DEFAULT_GOAL_TYPE",
]
