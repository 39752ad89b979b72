"""Exercise stopwatch and calorie estimation.

`SessionTimer` is the plain state machine (idle, running, paused) advanced by
10 ms ticks. `Stopwatch` owns the asyncio task that produces those ticks and
guarantees it is cancelled on stop, reset and close.
"""

import asyncio
import contextlib
import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Literal

logger = logging.getLogger(__name__)

TICK_MS = 10
MS_PER_SECOND = 1000
MS_PER_MINUTE = 60_000
MS_PER_HOUR = 3_600_000

# No per-user weight is stored, so every estimate assumes this body weight.
BODY_WEIGHT_KG = 70.0

TimerStatus = Literal["idle", "running", "paused"]


class UnknownExerciseTypeError(ValueError):
    """Raised when an exercise type key is not in the table."""

    pass


@dataclass(frozen=True)
class ExerciseType:
    """A selectable exercise with its metabolic equivalent (MET)."""

    key: str
    label: str
    met: float

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"key": self.key, "label": self.label, "met": self.met}


EXERCISE_TYPES: tuple[ExerciseType, ...] = (
    ExerciseType("walking_slow", "Walking (slow)", 2.5),
    ExerciseType("walking", "Walking (normal)", 3.5),
    ExerciseType("jogging", "Jogging", 7.0),
    ExerciseType("running", "Running", 9.0),
    ExerciseType("cycling_slow", "Cycling (slow)", 4.0),
    ExerciseType("cycling", "Cycling (normal)", 6.0),
    ExerciseType("swimming", "Swimming", 6.0),
    ExerciseType("yoga", "Yoga", 3.0),
    ExerciseType("strength", "Strength training", 3.5),
)

DEFAULT_EXERCISE_TYPE = EXERCISE_TYPES[0]

_EXERCISE_TYPES_BY_KEY = {t.key: t for t in EXERCISE_TYPES}


def get_exercise_type(key: str) -> ExerciseType:
    """Look up an exercise type by key.

    Raises:
        UnknownExerciseTypeError: If the key is not in the table.
    """
    try:
        return _EXERCISE_TYPES_BY_KEY[key]
    except KeyError:
        raise UnknownExerciseTypeError(f"Unknown exercise type: {key}") from None


def format_elapsed(ms: int) -> str:
    """Render elapsed milliseconds as MM:SS.HH.

    Minutes are not capped, so 100 minutes renders as "100:00.00".
    """
    minutes = ms // MS_PER_MINUTE
    seconds = (ms % MS_PER_MINUTE) // MS_PER_SECOND
    hundredths = (ms % MS_PER_SECOND) // 10
    return f"{minutes:02d}:{seconds:02d}.{hundredths:02d}"


def estimate_energy(ms: int, met: float, body_weight_kg: float = BODY_WEIGHT_KG) -> int:
    """Estimate kcal burned: MET x weight (kg) x hours, rounded half up.

    Args:
        ms: Elapsed exercise time in milliseconds.
        met: Metabolic equivalent of the exercise.
        body_weight_kg: Body weight used for the estimate.

    Returns:
        Whole kilocalories.
    """
    if ms < 0:
        raise ValueError("elapsed time must not be negative")
    # Single division after the product keeps x.5 results exact
    kcal = met * body_weight_kg * ms / MS_PER_HOUR
    return int(math.floor(kcal + 0.5))


@dataclass
class RecordDraft:
    """Values persisted when a timed session is saved."""

    name: str
    duration_minutes: int
    calories: int
    date: date


def derive_record(elapsed_ms: int, exercise_type: ExerciseType, today: date) -> RecordDraft:
    """Turn a timed session into the record to save.

    Duration is truncated to whole minutes; calories use the full elapsed time.
    """
    return RecordDraft(
        name=exercise_type.label,
        duration_minutes=elapsed_ms // MS_PER_MINUTE,
        calories=estimate_energy(elapsed_ms, exercise_type.met),
        date=today,
    )


class SessionTimer:
    """Stopwatch state: elapsed time, running flag and selected exercise."""

    def __init__(self, exercise_type: ExerciseType = DEFAULT_EXERCISE_TYPE) -> None:
        self._elapsed_ms = 0
        self._running = False
        self._exercise_type = exercise_type

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def running(self) -> bool:
        return self._running

    @property
    def exercise_type(self) -> ExerciseType:
        return self._exercise_type

    @property
    def status(self) -> TimerStatus:
        if self._running:
            return "running"
        return "paused" if self._elapsed_ms else "idle"

    @property
    def calories(self) -> int:
        return estimate_energy(self._elapsed_ms, self._exercise_type.met)

    @property
    def formatted(self) -> str:
        return format_elapsed(self._elapsed_ms)

    def start(self) -> None:
        self._running = True

    def stop(self) -> None:
        self._running = False

    def reset(self) -> None:
        self._running = False
        self._elapsed_ms = 0

    def tick(self) -> int:
        """Advance by one tick if running. Returns the elapsed time."""
        if self._running:
            self._elapsed_ms += TICK_MS
        return self._elapsed_ms

    def select_exercise(self, exercise_type: ExerciseType) -> None:
        self._exercise_type = exercise_type

    def to_record(self, today: date) -> RecordDraft:
        return derive_record(self._elapsed_ms, self._exercise_type, today)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "status": self.status,
            "running": self._running,
            "elapsed_ms": self._elapsed_ms,
            "formatted": self.formatted,
            "exercise_type": self._exercise_type.to_dict(),
            "calories": self.calories,
        }


class Stopwatch:
    """Runs a SessionTimer from a repeating asyncio tick task.

    Use as an async context manager (or call `close()`) so the tick task
    never outlives its owner.
    """

    def __init__(
        self,
        timer: SessionTimer | None = None,
        tick_interval: float = TICK_MS / MS_PER_SECOND,
    ) -> None:
        self.timer = timer or SessionTimer()
        self.tick_interval = tick_interval
        self._task: asyncio.Task | None = None

    @property
    def ticking(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "Stopwatch":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def start(self) -> None:
        """Start (or resume) timing. Must be called from a running event loop."""
        self.timer.start()
        if not self.ticking:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        self.timer.stop()
        await self._cancel_ticks()

    async def reset(self) -> None:
        self.timer.reset()
        await self._cancel_ticks()

    async def close(self) -> None:
        self.timer.stop()
        await self._cancel_ticks()

    def select_exercise(self, exercise_type: ExerciseType) -> None:
        self.timer.select_exercise(exercise_type)

    async def _run(self) -> None:
        while self.timer.running:
            await asyncio.sleep(self.tick_interval)
            self.timer.tick()

    async def _cancel_ticks(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class StopwatchRegistry:
    """Server-held stopwatches, one per user."""

    def __init__(self, tick_interval: float = TICK_MS / MS_PER_SECOND) -> None:
        self.tick_interval = tick_interval
        self._stopwatches: dict[int, Stopwatch] = {}

    def __len__(self) -> int:
        return len(self._stopwatches)

    def get(self, user_id: int) -> Stopwatch:
        """Return the user's stopwatch, creating an idle one on first use."""
        stopwatch = self._stopwatches.get(user_id)
        if stopwatch is None:
            stopwatch = Stopwatch(tick_interval=self.tick_interval)
            self._stopwatches[user_id] = stopwatch
        return stopwatch

    async def discard(self, user_id: int) -> None:
        stopwatch = self._stopwatches.pop(user_id, None)
        if stopwatch is not None:
            await stopwatch.close()

    async def close_all(self) -> None:
        """Cancel every tick task. Called on application shutdown."""
        stopwatches = list(self._stopwatches.values())
        self._stopwatches.clear()
        for stopwatch in stopwatches:
            await stopwatch.close()
        if stopwatches:
            logger.info("Closed %d stopwatch(es)", len(stopwatches))
