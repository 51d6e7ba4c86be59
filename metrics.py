from __future__ import annotations
import datetime
from typing import Dict, Iterable, List, Optional

from models import Granularity, SetRecord, WorkoutRecord
from periods import PeriodBucketer


class MetricsAggregator:
    """Reduce workouts and their sets into derived training metrics.

    Every method is a pure function of its arguments. Sets without an
    exercise, or whose exercise has no known muscle group, are left out of
    muscle group statistics instead of raising.
    """

    @staticmethod
    def _sets(workouts: Iterable[WorkoutRecord]) -> Iterable[SetRecord]:
        for workout in workouts:
            yield from workout.sets

    @classmethod
    def total_volume(cls, workouts: Iterable[WorkoutRecord]) -> float:
        """Sum of ``weight * reps`` over every set."""
        return sum((s.weight * s.reps for s in cls._sets(workouts)), 0.0)

    @classmethod
    def total_sets(cls, workouts: Iterable[WorkoutRecord]) -> int:
        return sum(len(w.sets) for w in workouts)

    @classmethod
    def total_reps(cls, workouts: Iterable[WorkoutRecord]) -> int:
        return sum(s.reps for s in cls._sets(workouts))

    @staticmethod
    def total_duration(workouts: Iterable[WorkoutRecord]) -> int:
        return sum(w.duration_minutes for w in workouts)

    @staticmethod
    def average_duration(workouts: Iterable[WorkoutRecord]) -> float:
        """Mean session duration in minutes, ``0`` when there are no workouts."""
        durations = [w.duration_minutes for w in workouts]
        if not durations:
            return 0.0
        return sum(durations) / len(durations)

    @staticmethod
    def workout_metrics(workout: WorkoutRecord) -> Dict[str, float]:
        """Return volume, heaviest set, set and rep totals for one workout."""
        total_volume = 0.0
        max_weight = 0.0
        total_reps = 0
        for s in workout.sets:
            total_volume += s.weight * s.reps
            total_reps += s.reps
            if s.weight > max_weight:
                max_weight = s.weight
        return {
            "total_volume": total_volume,
            "max_weight": max_weight,
            "total_sets": len(workout.sets),
            "total_reps": total_reps,
            "workout_count": 1,
        }

    @classmethod
    def muscle_group_distribution(
        cls, workouts: Iterable[WorkoutRecord]
    ) -> Dict[str, int]:
        """Count sets per muscle group."""
        distribution: Dict[str, int] = {}
        for s in cls._sets(workouts):
            if s.exercise is None or s.exercise.muscle_group is None:
                continue
            group = s.exercise.muscle_group.value
            distribution[group] = distribution.get(group, 0) + 1
        return distribution

    @classmethod
    def most_trained_muscle_group(
        cls, workouts: Iterable[WorkoutRecord]
    ) -> Optional[str]:
        distribution = cls.muscle_group_distribution(workouts)
        best: Optional[str] = None
        best_count = 0
        for group, count in distribution.items():
            if count > best_count:
                best, best_count = group, count
        return best

    @staticmethod
    def volume_by_bucket(
        workouts: Iterable[WorkoutRecord],
        granularity: str = Granularity.WEEK,
        window_size: int = 12,
        today: Optional[datetime.date] = None,
    ) -> List[Dict[str, float]]:
        """Return volume and workout count per bucket over a trailing window.

        Only buckets holding at least one workout are returned, oldest first.
        A workout counts towards the bucket containing its own date.
        """
        current = today or datetime.date.today()
        keys = PeriodBucketer.trailing_bucket_keys(current, granularity, window_size)
        if not keys:
            return []
        window_start = datetime.date.fromisoformat(keys[0])
        window_end = PeriodBucketer.bucket_end(current, granularity)
        buckets: Dict[str, Dict[str, object]] = {}
        for workout in workouts:
            if not window_start <= workout.date <= window_end:
                continue
            key = PeriodBucketer.bucket_key(workout.date, granularity)
            entry = buckets.setdefault(key, {"volume": 0.0, "workouts": set()})
            entry["volume"] += sum(s.weight * s.reps for s in workout.sets)
            entry["workouts"].add(workout.id)
        return [
            {
                "bucket": key,
                "volume": round(buckets[key]["volume"], 2),
                "workouts": len(buckets[key]["workouts"]),
            }
            for key in sorted(buckets)
        ]

    @staticmethod
    def weekly_progress(
        workouts: Iterable[WorkoutRecord],
        window_size: int = 8,
        today: Optional[datetime.date] = None,
    ) -> List[Dict[str, float]]:
        """Return volume, set count, workout count and mean weight per week."""
        current = today or datetime.date.today()
        keys = PeriodBucketer.trailing_bucket_keys(
            current, Granularity.WEEK, window_size
        )
        if not keys:
            return []
        window_start = datetime.date.fromisoformat(keys[0])
        window_end = PeriodBucketer.bucket_end(current, Granularity.WEEK)
        weeks: Dict[str, Dict[str, object]] = {}
        for workout in workouts:
            if not window_start <= workout.date <= window_end or not workout.sets:
                continue
            key = PeriodBucketer.bucket_key(workout.date, Granularity.WEEK)
            entry = weeks.setdefault(
                key,
                {"volume": 0.0, "sets": 0, "weight": 0.0, "workouts": set()},
            )
            for s in workout.sets:
                entry["volume"] += s.weight * s.reps
                entry["sets"] += 1
                entry["weight"] += s.weight
            entry["workouts"].add(workout.id)
        result = []
        for key in sorted(weeks):
            data = weeks[key]
            result.append(
                {
                    "bucket": key,
                    "volume": round(data["volume"], 2),
                    "sets": data["sets"],
                    "workouts": len(data["workouts"]),
                    "avg_weight": round(data["weight"] / data["sets"], 2),
                }
            )
        return result

    @classmethod
    def most_frequent_exercises(
        cls, workouts: Iterable[WorkoutRecord], limit: int = 5
    ) -> List[Dict[str, object]]:
        """Return the exercises with the most sets.

        Exercises with equal counts keep the order in which they were first
        encountered.
        """
        counts: Dict[int, Dict[str, object]] = {}
        for s in cls._sets(workouts):
            entry = counts.get(s.exercise_id)
            if entry is None:
                exercise = s.exercise
                entry = {
                    "exercise_id": s.exercise_id,
                    "exercise_name": exercise.name if exercise else "Unknown",
                    "muscle_group": (
                        exercise.muscle_group.value
                        if exercise and exercise.muscle_group
                        else None
                    ),
                    "count": 0,
                }
                counts[s.exercise_id] = entry
            entry["count"] += 1
        ranked = sorted(counts.values(), key=lambda x: x["count"], reverse=True)
        return ranked[: max(limit, 0)]

    @staticmethod
    def daily_volume(workouts: Iterable[WorkoutRecord]) -> Dict[str, float]:
        """Return total volume per ISO date."""
        by_date: Dict[str, float] = {}
        for workout in workouts:
            key = workout.date.isoformat()
            vol = sum(s.weight * s.reps for s in workout.sets)
            by_date[key] = round(by_date.get(key, 0.0) + vol, 2)
        return by_date

    @classmethod
    def period_metrics(
        cls,
        workouts: Iterable[WorkoutRecord],
        start: datetime.date,
        end: datetime.date,
    ) -> Dict[str, float]:
        """Return volume, workout count and mean duration within ``[start, end]``."""
        selected = [w for w in workouts if start <= w.date <= end]
        return {
            "volume": round(cls.total_volume(selected), 2),
            "workouts": len(selected),
            "avg_duration": round(cls.average_duration(selected), 2),
        }

    @staticmethod
    def exercise_progress(
        workouts: Iterable[WorkoutRecord], exercise_id: int
    ) -> Dict[str, object]:
        """Return the chronological set history of one exercise."""
        name = ""
        history: Dict[str, list] = {"dates": [], "weights": [], "reps": [], "volume": []}
        for workout in sorted(workouts, key=lambda w: w.date):
            for s in workout.sets:
                if s.exercise_id != exercise_id:
                    continue
                if not name and s.exercise is not None:
                    name = s.exercise.name
                history["dates"].append(workout.date.isoformat())
                history["weights"].append(s.weight)
                history["reps"].append(s.reps)
                history["volume"].append(s.weight * s.reps)
        return {"exercise_id": exercise_id, "exercise_name": name, **history}

    @classmethod
    def summary(cls, workouts: Iterable[WorkoutRecord]) -> Dict[str, object]:
        """Return aggregated workout statistics."""
        items = list(workouts)
        return {
            "total_workouts": len(items),
            "total_duration": cls.total_duration(items),
            "total_sets": cls.total_sets(items),
            "total_volume": round(cls.total_volume(items), 2),
            "average_duration": round(cls.average_duration(items)),
            "most_trained_muscle": cls.most_trained_muscle_group(items),
        }
