from __future__ import annotations
from typing import Iterable, Mapping, Tuple

from db import AsyncWorkoutRepository
from goal_tracking_service import GoalTrackingResult, GoalTrackingService
from models import WorkoutRecord


class WorkoutService:
    """Persist workouts and feed them to goal tracking."""

    def __init__(
        self,
        workout_repo: AsyncWorkoutRepository,
        goal_tracker: GoalTrackingService,
    ) -> None:
        self.workouts = workout_repo
        self.goal_tracker = goal_tracker

    async def log_workout(
        self,
        user_id: str,
        date: str,
        duration_minutes: int,
        notes: str | None = None,
        sets: Iterable[Mapping[str, object]] = (),
    ) -> Tuple[WorkoutRecord, GoalTrackingResult]:
        """Store a workout with its sets, then update the user's goals.

        Each item of ``sets`` provides ``exercise_id``, ``reps``, ``weight`` and
        optionally ``rest_time_seconds``; they are numbered in the given order.
        The workout and its sets are written in one transaction, so a rejected
        set leaves nothing behind. Goal tracking is best-effort and never fails
        the logged workout.
        """
        rows = [
            (
                int(item["exercise_id"]),
                int(item["reps"]),
                float(item.get("weight", 0.0)),
                item.get("rest_time_seconds"),
            )
            for item in sets
        ]
        workout_id = await self.workouts.create_with_sets(
            user_id, date, duration_minutes, notes, rows
        )
        workout = await self.workouts.fetch(workout_id)
        result = await self.goal_tracker.update_goals_from_workout(user_id, workout)
        return workout, result

    async def update_workout(
        self,
        workout_id: int,
        date: str | None = None,
        duration_minutes: int | None = None,
        notes: str | None = None,
    ) -> WorkoutRecord:
        """Edit a workout's date, duration or notes.

        Goals were credited when the workout was logged and are left untouched.
        """
        await self.workouts.update(workout_id, date, duration_minutes, notes)
        return await self.workouts.fetch(workout_id)
