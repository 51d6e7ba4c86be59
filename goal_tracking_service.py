from __future__ import annotations
import datetime
import logging
from typing import Callable, Dict, List, Optional, Tuple

from db import AsyncGoalRepository
from metrics import MetricsAggregator
from models import Goal, GoalProgressEntry, GoalType, WorkoutRecord

logger = logging.getLogger(__name__)

Contribution = Optional[Tuple[float, str]]
ContributionFn = Callable[[Goal, Dict[str, float], str], Contribution]


def _volume(goal: Goal, metrics: Dict[str, float], weight_unit: str) -> Contribution:
    volume = metrics["total_volume"]
    if volume <= 0:
        return None
    return volume, f"Workout volume: {volume:.1f} {weight_unit}"


def _frequency(goal: Goal, metrics: Dict[str, float], weight_unit: str) -> Contribution:
    return 1.0, "Workout completed"


def _strength(goal: Goal, metrics: Dict[str, float], weight_unit: str) -> Contribution:
    # raw observation; the repository keeps the running maximum
    weight = metrics["max_weight"]
    if weight <= 0:
        return None
    return weight, f"Max weight lifted: {weight:g} {goal.unit}"


def _endurance(goal: Goal, metrics: Dict[str, float], weight_unit: str) -> Contribution:
    reps = metrics["total_reps"]
    if reps <= 0:
        return None
    return float(reps), f"Total reps: {reps}"


# weight and custom goals only change through manual entries
CONTRIBUTIONS: Dict[GoalType, Optional[ContributionFn]] = {
    GoalType.VOLUME: _volume,
    GoalType.FREQUENCY: _frequency,
    GoalType.STRENGTH: _strength,
    GoalType.ENDURANCE: _endurance,
    GoalType.WEIGHT: None,
    GoalType.CUSTOM: None,
}


class GoalTrackingResult:
    """Outcome of one best-effort goal update run.

    Callers may inspect it but never need to; failures are recorded here
    instead of being raised.
    """

    def __init__(self) -> None:
        self.entries: List[GoalProgressEntry] = []
        self.completed_goal_ids: List[int] = []
        self.skipped_goal_ids: List[int] = []
        self.errors: List[str] = []

    @property
    def ok(self) -> bool:
        return not self.errors

    def __repr__(self) -> str:
        return (
            f"GoalTrackingResult(entries={len(self.entries)}, "
            f"completed={self.completed_goal_ids}, errors={len(self.errors)})"
        )


class GoalTrackingService:
    """Advance active goals from newly logged workouts."""

    def __init__(self, goal_repo: AsyncGoalRepository, weight_unit: str = "kg") -> None:
        self.goals = goal_repo
        self.weight_unit = weight_unit

    @staticmethod
    def contribution_for(
        goal: Goal, metrics: Dict[str, float], weight_unit: str = "kg"
    ) -> Contribution:
        """Return ``(value, notes)`` for ``goal`` or ``None`` when nothing applies."""
        strategy = CONTRIBUTIONS[goal.type]
        if strategy is None:
            return None
        return strategy(goal, metrics, weight_unit)

    async def update_goals_from_workout(
        self, user_id: str, workout: WorkoutRecord
    ) -> GoalTrackingResult:
        result = GoalTrackingResult()
        try:
            active = await self.goals.find_active_goals(user_id)
        except Exception as exc:
            logger.exception("Error loading active goals for user %s", user_id)
            result.errors.append(f"find_active_goals: {exc}")
            return result
        if not active:
            return result

        metrics = MetricsAggregator.workout_metrics(workout)
        for goal in active:
            try:
                await self._apply(goal, metrics, result)
            except Exception as exc:
                logger.exception("Error updating goal %s from workout %s", goal.id, workout.id)
                result.errors.append(f"goal {goal.id}: {exc}")
        return result

    async def _apply(
        self, goal: Goal, metrics: Dict[str, float], result: GoalTrackingResult
    ) -> None:
        contribution = self.contribution_for(goal, metrics, self.weight_unit)
        if contribution is None:
            result.skipped_goal_ids.append(goal.id)
            return
        value, notes = contribution
        entry = await self.goals.append_goal_progress(goal.id, value, notes)
        result.entries.append(entry)
        updated = await self.goals.find_goal_by_id(goal.id)
        if updated.is_completed:
            logger.info("Goal %s completed automatically", goal.id)
            result.completed_goal_ids.append(goal.id)

    @staticmethod
    def calculate_progress(goal: Goal) -> float:
        """Return completion percentage in the range 0-100."""
        if goal.target_value == 0:
            return 0.0
        pct = goal.current_value / goal.target_value * 100.0
        return round(min(100.0, max(0.0, pct)), 2)

    @staticmethod
    def days_remaining(goal: Goal, today: datetime.date | None = None) -> int | None:
        if goal.target_date is None:
            return None
        current = today or datetime.date.today()
        return (goal.target_date - current).days

    @classmethod
    def is_overdue(cls, goal: Goal, today: datetime.date | None = None) -> bool:
        remaining = cls.days_remaining(goal, today)
        return remaining is not None and remaining < 0 and not goal.is_completed
