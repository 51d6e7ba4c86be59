from __future__ import annotations
import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class MuscleGroup(str, Enum):
    CHEST = "chest"
    BACK = "back"
    LEGS = "legs"
    SHOULDERS = "shoulders"
    ARMS = "arms"
    CORE = "core"
    FULL_BODY = "full_body"
    CARDIO = "cardio"


class ExerciseType(str, Enum):
    STRENGTH = "strength"
    CARDIO = "cardio"
    MOBILITY = "mobility"
    FLEXIBILITY = "flexibility"


class GoalType(str, Enum):
    VOLUME = "volume"
    FREQUENCY = "frequency"
    STRENGTH = "strength"
    WEIGHT = "weight"
    ENDURANCE = "endurance"
    CUSTOM = "custom"


class Granularity(str, Enum):
    WEEK = "week"
    MONTH = "month"


class ExerciseRef(BaseModel):
    """Exercise catalog entry referenced by sets."""

    id: int
    name: str
    muscle_group: Optional[MuscleGroup] = None
    type: ExerciseType = ExerciseType.STRENGTH

    @field_validator("muscle_group", mode="before")
    @classmethod
    def _unknown_group_is_none(cls, value):
        if value is None or isinstance(value, MuscleGroup):
            return value
        try:
            return MuscleGroup(value)
        except ValueError:
            return None


class SetRecord(BaseModel):
    id: int
    workout_id: int
    exercise_id: int
    reps: int = Field(gt=0)
    weight: float = Field(ge=0)
    rest_time_seconds: Optional[int] = None
    order: int = 1
    exercise: Optional[ExerciseRef] = None

    @property
    def volume(self) -> float:
        return self.weight * self.reps


class WorkoutRecord(BaseModel):
    """A logged training session with its ordered sets."""

    id: int
    user_id: str
    date: datetime.date
    duration_minutes: int = Field(gt=0)
    notes: Optional[str] = None
    sets: List[SetRecord] = Field(default_factory=list)


class Goal(BaseModel):
    id: int
    user_id: str
    title: str = ""
    type: GoalType
    target_value: float
    current_value: float = 0.0
    unit: str
    start_date: Optional[datetime.date] = None
    target_date: Optional[datetime.date] = None
    is_completed: bool = False
    completed_at: Optional[datetime.datetime] = None


class GoalProgressEntry(BaseModel):
    id: int
    goal_id: int
    value: float
    notes: Optional[str] = None
    created_at: datetime.datetime
