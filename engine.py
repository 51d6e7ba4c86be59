from __future__ import annotations

from config import configure_logging, load_settings
from db import (
    AsyncExerciseRepository,
    AsyncGoalRepository,
    AsyncSetRepository,
    AsyncWorkoutRepository,
    StatsCacheRepository,
)
from goal_tracking_service import GoalTrackingService
from settings_schema import EngineSettings
from stats_service import StatisticsService
from usage_stats import UsageStatsService
from workout_service import WorkoutService


class WorkoutEngine:
    """Wire repositories and services from one set of engine settings."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        *,
        setup_logging: bool = True,
    ) -> None:
        self.settings = settings or EngineSettings()
        if setup_logging:
            configure_logging(self.settings.log_level)
        db_path = self.settings.db_path
        self.exercises = AsyncExerciseRepository(db_path)
        self.workouts = AsyncWorkoutRepository(db_path)
        self.sets = AsyncSetRepository(db_path)
        self.goals = AsyncGoalRepository(db_path)
        self.stats_cache = StatsCacheRepository(db_path)
        self.goal_tracker = GoalTrackingService(self.goals, self.settings.weight_unit)
        self.workout_service = WorkoutService(self.workouts, self.goal_tracker)
        self.statistics = StatisticsService(self.workouts, self.settings)

    @classmethod
    def from_file(cls, path: str = "settings.yaml", **kwargs) -> "WorkoutEngine":
        return cls(load_settings(path), **kwargs)

    def usage_stats(self, user_id: str) -> UsageStatsService:
        return UsageStatsService(
            self.stats_cache, user_id, self.settings.activity_buckets
        )
