from __future__ import annotations
import datetime
from typing import Dict, Iterable, List, Optional

from models import SetRecord, WorkoutRecord


class PersonalRecordTracker:
    """Find the heaviest logged set for each exercise."""

    @staticmethod
    def personal_records(
        workouts: Iterable[WorkoutRecord],
    ) -> List[Dict[str, object]]:
        """Return one record per exercise sorted by ``max_weight`` descending.

        When two sets share the top weight the first one encountered is kept,
        so results depend on the iteration order of ``workouts``.
        """
        records: Dict[int, Dict[str, object]] = {}
        for workout in workouts:
            for s in workout.sets:
                current = records.get(s.exercise_id)
                if current is None or s.weight > current["max_weight"]:
                    records[s.exercise_id] = {
                        "exercise_id": s.exercise_id,
                        "exercise_name": s.exercise.name if s.exercise else "Unknown",
                        "max_weight": s.weight,
                        "reps": s.reps,
                        "date": workout.date.isoformat(),
                    }
        return sorted(records.values(), key=lambda x: x["max_weight"], reverse=True)

    @classmethod
    def personal_record_for(
        cls, workouts: Iterable[WorkoutRecord], exercise_id: int
    ) -> Optional[Dict[str, object]]:
        for record in cls.personal_records(workouts):
            if record["exercise_id"] == exercise_id:
                return record
        return None

    @classmethod
    def previous_personal_record(
        cls,
        workouts: Iterable[WorkoutRecord],
        exercise_id: int,
        before: datetime.date,
    ) -> Optional[Dict[str, object]]:
        """Return the record for ``exercise_id`` among workouts before ``before``."""
        earlier = [w for w in workouts if w.date < before]
        return cls.personal_record_for(earlier, exercise_id)

    @classmethod
    def is_new_record(
        cls,
        workouts: Iterable[WorkoutRecord],
        set_record: SetRecord,
        date: datetime.date,
    ) -> bool:
        """Return ``True`` when ``set_record`` beats every earlier set."""
        previous = cls.previous_personal_record(workouts, set_record.exercise_id, date)
        if previous is None:
            return set_record.weight > 0
        return set_record.weight > previous["max_weight"]
