from __future__ import annotations
import datetime
from typing import Dict, Iterable, Optional

from models import Granularity, WorkoutRecord
from metrics import MetricsAggregator
from periods import PeriodBucketer


class PeriodComparator:
    """Compare the calendar period containing today with the one before it."""

    METRICS: tuple[str, ...] = ("volume", "workouts", "avg_duration")
    NEUTRAL_THRESHOLD: float = 1.0

    @staticmethod
    def percent_change(current: float, previous: float) -> float:
        """Return the relative change in percent.

        A zero baseline yields ``100`` when there is new activity and ``0``
        otherwise.
        """
        if previous == 0:
            return 100.0 if current > 0 else 0.0
        return (current - previous) / previous * 100.0

    @classmethod
    def classify_change(
        cls, change: float, threshold: Optional[float] = None
    ) -> str:
        limit = cls.NEUTRAL_THRESHOLD if threshold is None else threshold
        if abs(change) < limit:
            return "neutral"
        return "positive" if change > 0 else "negative"

    @classmethod
    def compare_metric(
        cls, current: float, previous: float, threshold: Optional[float] = None
    ) -> Dict[str, object]:
        change = cls.percent_change(current, previous)
        return {
            "percent": round(change, 2),
            "direction": cls.classify_change(change, threshold),
        }

    @classmethod
    def compare_periods(
        cls,
        workouts: Iterable[WorkoutRecord],
        granularity: str = Granularity.WEEK,
        today: Optional[datetime.date] = None,
        threshold: Optional[float] = None,
    ) -> Dict[str, object]:
        """Return metrics for the current and previous period with deltas."""
        current_day = today or datetime.date.today()
        items = list(workouts)
        cur_start = PeriodBucketer.bucket_start(current_day, granularity)
        cur_end = PeriodBucketer.bucket_end(current_day, granularity)
        prev_start = PeriodBucketer.previous_bucket_start(current_day, granularity)
        prev_end = cur_start - datetime.timedelta(days=1)
        current = MetricsAggregator.period_metrics(items, cur_start, cur_end)
        previous = MetricsAggregator.period_metrics(items, prev_start, prev_end)
        changes = {
            name: cls.compare_metric(current[name], previous[name], threshold)
            for name in cls.METRICS
        }
        return {
            "granularity": Granularity(granularity).value,
            "current_period": {"start": cur_start.isoformat(), "end": cur_end.isoformat()},
            "previous_period": {
                "start": prev_start.isoformat(),
                "end": prev_end.isoformat(),
            },
            "current": current,
            "previous": previous,
            "changes": changes,
        }

    @staticmethod
    def has_comparison_data(result: Dict[str, object]) -> bool:
        """Return ``False`` when neither period holds a workout."""
        return bool(result["current"]["workouts"] or result["previous"]["workouts"])
