"""
Progress Tracker: completed days against a generated 28-day plan.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from skinplan.engine.plan_builder import PLAN_DAYS, phase_for_day
from skinplan.exceptions import InvalidPlanDay
from skinplan.schemas import Plan28, PlanPhase, PlanProgress


@dataclass(frozen=True)
class ProgressSummary:
    current_day: int
    phase: PlanPhase
    completed: int
    total: int
    is_complete: bool

    @property
    def ratio(self) -> float:
        return self.completed / self.total if self.total else 0.0


def _as_day(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def normalize_progress(user_id: str, current_day: Any, completed_days: Iterable[Any]) -> PlanProgress:
    """Clamp the current day to 1..28 and clean up the completed-day list.

    Client payloads are loose: numbers may arrive as strings, duplicated or out
    of range. Anything that is not a whole day in 1..28 is dropped.
    """
    day = _as_day(current_day) or 1
    day = min(max(day, 1), PLAN_DAYS)

    completed = set()
    for value in completed_days or []:
        number = _as_day(value)
        if number is not None and 1 <= number <= PLAN_DAYS:
            completed.add(number)

    return PlanProgress(user_id=user_id, current_day=day, completed_days=sorted(completed))


def mark_day_completed(progress: PlanProgress, day: int, plan: Optional[Plan28] = None) -> PlanProgress:
    """Record a finished day and move the cursor to the next unfinished one."""
    number = _as_day(day)
    valid_days = {d.day_number for d in plan.days} if plan is not None else set(range(1, PLAN_DAYS + 1))
    if number is None or number not in valid_days:
        raise InvalidPlanDay(day)

    completed = sorted(set(progress.completed_days) | {number})
    next_day = next(
        (d for d in range(number + 1, PLAN_DAYS + 1) if d not in completed),
        PLAN_DAYS,
    )
    return PlanProgress(
        user_id=progress.user_id,
        current_day=max(progress.current_day, next_day),
        completed_days=completed,
    )


def progress_summary(progress: PlanProgress) -> ProgressSummary:
    return ProgressSummary(
        current_day=progress.current_day,
        phase=phase_for_day(progress.current_day),
        completed=len(progress.completed_days),
        total=PLAN_DAYS,
        is_complete=len(progress.completed_days) == PLAN_DAYS,
    )
