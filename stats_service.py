from __future__ import annotations
import asyncio
import datetime
import sqlite3
from typing import Dict, List, Optional

from comparison import PeriodComparator
from db import AsyncWorkoutRepository
from metrics import MetricsAggregator
from models import Granularity, WorkoutRecord
from periods import PeriodBucketer
from records import PersonalRecordTracker
from settings_schema import EngineSettings
from streaks import StreakCalculator


class ReportError(Exception):
    """Raised when report data could not be loaded."""


class StatisticsService:
    """Compute dashboard and report statistics for a user.

    Workouts are loaded through the repository and handed to the pure
    calculators. Load failures raise :class:`ReportError` so callers can tell
    a failed fetch apart from an empty history.
    """

    def __init__(
        self,
        workout_repo: AsyncWorkoutRepository,
        settings: EngineSettings | None = None,
    ) -> None:
        self.workouts = workout_repo
        self.settings = settings or EngineSettings()

    async def _load(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[WorkoutRecord]:
        try:
            return await self.workouts.find_workouts_by_user(
                user_id, start_date=start_date, end_date=end_date
            )
        except (sqlite3.Error, OSError) as exc:
            raise ReportError(f"could not load workouts for {user_id}: {exc}") from exc

    async def overview(self, user_id: str) -> Dict[str, object]:
        return MetricsAggregator.summary(await self._load(user_id))

    async def total_volume(self, user_id: str) -> float:
        return round(MetricsAggregator.total_volume(await self._load(user_id)), 2)

    async def volume_by_week(
        self,
        user_id: str,
        weeks: int | None = None,
        today: datetime.date | None = None,
    ) -> List[Dict[str, float]]:
        return MetricsAggregator.volume_by_bucket(
            await self._load(user_id),
            Granularity.WEEK,
            weeks or self.settings.volume_window_weeks,
            today,
        )

    async def volume_by_month(
        self,
        user_id: str,
        months: int = 12,
        today: datetime.date | None = None,
    ) -> List[Dict[str, float]]:
        return MetricsAggregator.volume_by_bucket(
            await self._load(user_id), Granularity.MONTH, months, today
        )

    async def weekly_progress(
        self,
        user_id: str,
        weeks: int | None = None,
        today: datetime.date | None = None,
    ) -> List[Dict[str, float]]:
        return MetricsAggregator.weekly_progress(
            await self._load(user_id),
            weeks or self.settings.progress_window_weeks,
            today,
        )

    async def muscle_group_distribution(self, user_id: str) -> Dict[str, int]:
        return MetricsAggregator.muscle_group_distribution(await self._load(user_id))

    async def most_frequent_exercises(
        self, user_id: str, limit: int | None = None
    ) -> List[Dict[str, object]]:
        return MetricsAggregator.most_frequent_exercises(
            await self._load(user_id), limit or self.settings.frequent_exercise_limit
        )

    async def exercise_progress(self, user_id: str, exercise_id: int) -> Dict[str, object]:
        return MetricsAggregator.exercise_progress(await self._load(user_id), exercise_id)

    async def personal_records(self, user_id: str) -> List[Dict[str, object]]:
        return PersonalRecordTracker.personal_records(await self._load(user_id))

    async def daily_volume(self, user_id: str) -> Dict[str, float]:
        return MetricsAggregator.daily_volume(await self._load(user_id))

    async def streak(
        self, user_id: str, today: datetime.date | None = None
    ) -> Dict[str, object]:
        workouts = await self._load(user_id)
        dates = [w.date for w in workouts]
        status = StreakCalculator.streak_status(dates, today)
        status["longest"] = StreakCalculator.longest_streak(dates)
        status["badges"] = StreakCalculator.unlocked_badges(status["current"])
        return status

    async def period_comparison(
        self,
        user_id: str,
        granularity: str = Granularity.WEEK,
        today: datetime.date | None = None,
    ) -> Dict[str, object]:
        current = today or datetime.date.today()
        start = PeriodBucketer.previous_bucket_start(current, granularity)
        workouts = await self._load(user_id, start_date=start.isoformat())
        result = PeriodComparator.compare_periods(
            workouts,
            granularity,
            current,
            self.settings.neutral_change_threshold,
        )
        result["has_data"] = PeriodComparator.has_comparison_data(result)
        return result

    async def dashboard(
        self, user_id: str, today: datetime.date | None = None
    ) -> Dict[str, object]:
        """Load the independent dashboard widgets concurrently."""
        current = today or datetime.date.today()
        overview, volume, records, streak, comparison = await asyncio.gather(
            self.overview(user_id),
            self.volume_by_week(user_id, today=current),
            self.personal_records(user_id),
            self.streak(user_id, current),
            self.period_comparison(user_id, Granularity.WEEK, current),
        )
        insufficient = []
        if not overview["total_workouts"]:
            insufficient.append("overview")
        if not volume:
            insufficient.append("volume_by_week")
        if not records:
            insufficient.append("personal_records")
        if not comparison["has_data"]:
            insufficient.append("period_comparison")
        return {
            "overview": overview,
            "volume_by_week": volume,
            "personal_records": records,
            "streak": streak,
            "period_comparison": comparison,
            "insufficient_data": insufficient,
        }
