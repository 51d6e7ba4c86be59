from __future__ import annotations
import datetime
import logging
import sqlite3
from typing import Dict, Iterable, List

from db import StatsCacheRepository
from metrics import MetricsAggregator
from models import ExerciseRef, Granularity, WorkoutRecord
from periods import PeriodBucketer
from streaks import StreakCalculator

logger = logging.getLogger(__name__)


class UsageStatsService:
    """Maintain per-user usage statistics backed by an explicit cache store.

    ``load`` reads the cached document when the service starts and ``update``
    recomputes and persists it. Nothing is kept in module state.
    """

    def __init__(
        self,
        cache: StatsCacheRepository,
        user_id: str,
        activity_buckets: int = 12,
    ) -> None:
        self.cache = cache
        self.user_id = user_id
        self.activity_buckets = activity_buckets
        self._stats: Dict[str, object] | None = None

    @property
    def key(self) -> str:
        return f"usage_stats:{self.user_id}"

    def load(self) -> Dict[str, object] | None:
        try:
            self._stats = self.cache.load(self.key)
        except (sqlite3.Error, ValueError):
            logger.exception("Error reading usage stats for %s", self.user_id)
            raise
        return self._stats

    @property
    def stats(self) -> Dict[str, object] | None:
        return self._stats

    def update(
        self,
        workouts: Iterable[WorkoutRecord],
        exercises: Iterable[ExerciseRef] = (),
        today: datetime.date | None = None,
    ) -> Dict[str, object]:
        """Recompute statistics from ``workouts`` and persist them."""
        stored = self._stats if self._stats is not None else self.load() or {}
        current = today or datetime.date.today()
        items = list(workouts)
        dates = sorted(w.date for w in items)
        first = dates[0] if dates else None
        last = dates[-1] if dates else None
        week_start = PeriodBucketer.bucket_start(current, Granularity.WEEK)
        month_start = PeriodBucketer.bucket_start(current, Granularity.MONTH)
        current_streak = StreakCalculator.current_streak(dates, current)
        frequent = MetricsAggregator.most_frequent_exercises(items, limit=1)

        stats: Dict[str, object] = {
            "total_sessions": int(stored.get("total_sessions", 0)) + 1,
            "last_session_date": current.isoformat(),
            "current_streak": current_streak,
            "longest_streak": max(
                current_streak,
                StreakCalculator.longest_streak(dates),
                int(stored.get("longest_streak", 0)),
            ),
            "total_workouts": len(items),
            "total_workout_time": MetricsAggregator.total_duration(items),
            "average_workout_duration": round(
                MetricsAggregator.average_duration(items), 2
            ),
            "workouts_this_week": sum(1 for d in dates if d >= week_start),
            "workouts_this_month": sum(1 for d in dates if d >= month_start),
            "total_exercises": len(list(exercises)),
            "unique_exercises_used": len(
                {s.exercise_id for w in items for s in w.sets}
            ),
            "most_used_exercise": frequent[0]["exercise_id"] if frequent else None,
            "most_trained_muscle_group": MetricsAggregator.most_trained_muscle_group(items),
            "first_workout_date": first.isoformat() if first else None,
            "last_workout_date": last.isoformat() if last else None,
            "days_since_first_workout": (current - first).days if first else 0,
            "days_since_last_workout": (current - last).days if last else 0,
            "weekly_activity": self._activity(items, Granularity.WEEK),
            "monthly_activity": self._activity(items, Granularity.MONTH),
        }
        try:
            self.cache.save(self.key, stats)
        except sqlite3.Error:
            logger.exception("Error saving usage stats for %s", self.user_id)
            raise
        self._stats = stats
        return stats

    def reset(self) -> None:
        self.cache.clear(self.key)
        self._stats = None
        logger.info("Usage stats reset for %s", self.user_id)

    def _activity(
        self, workouts: List[WorkoutRecord], granularity: Granularity
    ) -> List[Dict[str, object]]:
        """Return workout count and duration for the latest buckets with data."""
        buckets: Dict[str, Dict[str, int]] = {}
        for w in workouts:
            if granularity is Granularity.WEEK:
                key = PeriodBucketer.bucket_key(w.date, granularity)
            else:
                key = PeriodBucketer.month_key(w.date)
            entry = buckets.setdefault(key, {"workout_count": 0, "total_duration": 0})
            entry["workout_count"] += 1
            entry["total_duration"] += w.duration_minutes
        label = "week" if granularity is Granularity.WEEK else "month"
        rows = [{label: key, **buckets[key]} for key in sorted(buckets)]
        return rows[-self.activity_buckets:]
