from __future__ import annotations
import datetime
from typing import Dict, Iterable, List, Set, Union

DateLike = Union[datetime.date, datetime.datetime, str]


class StreakCalculator:
    """Compute consecutive-day workout streaks."""

    BADGE_THRESHOLDS: tuple[int, ...] = (100, 30, 7)

    @staticmethod
    def _to_date(value: DateLike) -> datetime.date:
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        return datetime.date.fromisoformat(str(value)[:10])

    @classmethod
    def workout_days(cls, dates: Iterable[DateLike]) -> Set[datetime.date]:
        """Return the distinct calendar days, ignoring time of day."""
        return {cls._to_date(d) for d in dates}

    @classmethod
    def streak_ending(cls, dates: Iterable[DateLike], day: DateLike) -> int:
        """Count consecutive workout days walking back from ``day``."""
        days = cls.workout_days(dates)
        check = cls._to_date(day)
        streak = 0
        while check in days:
            streak += 1
            check -= datetime.timedelta(days=1)
        return streak

    @classmethod
    def current_streak(
        cls, dates: Iterable[DateLike], today: DateLike | None = None
    ) -> int:
        """Return the streak ending today, ``0`` if today has no workout."""
        return cls.streak_ending(dates, today or datetime.date.today())

    @classmethod
    def is_at_risk(
        cls, dates: Iterable[DateLike], today: DateLike | None = None
    ) -> bool:
        """Return ``True`` when today is unlogged but yesterday was trained."""
        days = cls.workout_days(dates)
        current = cls._to_date(today or datetime.date.today())
        yesterday = current - datetime.timedelta(days=1)
        return current not in days and yesterday in days

    @classmethod
    def streak_status(
        cls, dates: Iterable[DateLike], today: DateLike | None = None
    ) -> Dict[str, object]:
        """Return the current streak, the at-risk flag and the streak at stake."""
        days = cls.workout_days(dates)
        current = cls._to_date(today or datetime.date.today())
        at_risk = cls.is_at_risk(days, current)
        pending = 0
        if at_risk:
            pending = cls.streak_ending(days, current - datetime.timedelta(days=1))
        return {
            "current": cls.streak_ending(days, current),
            "at_risk": at_risk,
            "pending": pending,
        }

    @classmethod
    def longest_streak(cls, dates: Iterable[DateLike]) -> int:
        days = sorted(cls.workout_days(dates))
        if not days:
            return 0
        best = current = 1
        for prev, nxt in zip(days, days[1:]):
            if (nxt - prev).days == 1:
                current += 1
            else:
                best = max(best, current)
                current = 1
        return max(best, current)

    @classmethod
    def unlocked_badges(cls, streak: int) -> List[int]:
        return [t for t in cls.BADGE_THRESHOLDS if streak >= t]
