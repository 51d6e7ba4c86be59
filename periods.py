import datetime
from typing import List

from models import Granularity


class PeriodBucketer:
    """Map calendar dates onto week (Sunday start) and month buckets."""

    @staticmethod
    def bucket_start(date: datetime.date, granularity: str) -> datetime.date:
        """Return the first day of the bucket containing ``date``."""
        gran = Granularity(granularity)
        if gran is Granularity.WEEK:
            # weekday(): Monday=0 .. Sunday=6
            return date - datetime.timedelta(days=(date.weekday() + 1) % 7)
        return date.replace(day=1)

    @classmethod
    def bucket_key(cls, date: datetime.date, granularity: str) -> str:
        return cls.bucket_start(date, granularity).isoformat()

    @classmethod
    def bucket_end(cls, date: datetime.date, granularity: str) -> datetime.date:
        """Return the last day of the bucket containing ``date``."""
        start = cls.bucket_start(date, granularity)
        if Granularity(granularity) is Granularity.WEEK:
            return start + datetime.timedelta(days=6)
        return cls._next_month(start) - datetime.timedelta(days=1)

    @classmethod
    def previous_bucket_start(
        cls, date: datetime.date, granularity: str
    ) -> datetime.date:
        start = cls.bucket_start(date, granularity)
        return cls.bucket_start(start - datetime.timedelta(days=1), granularity)

    @classmethod
    def trailing_bucket_keys(
        cls, today: datetime.date, granularity: str, count: int
    ) -> List[str]:
        """Return ``count`` contiguous bucket keys ending at ``today``'s bucket."""
        keys: List[str] = []
        start = cls.bucket_start(today, granularity)
        for _ in range(max(count, 0)):
            keys.append(start.isoformat())
            start = cls.previous_bucket_start(start, granularity)
        keys.reverse()
        return keys

    @staticmethod
    def month_key(date: datetime.date) -> str:
        return f"{date.year:04d}-{date.month:02d}"

    @staticmethod
    def _next_month(date: datetime.date) -> datetime.date:
        if date.month == 12:
            return datetime.date(date.year + 1, 1, 1)
        return datetime.date(date.year, date.month + 1, 1)
