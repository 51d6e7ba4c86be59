from pydantic import BaseModel, Field, ValidationError

class EngineSettings(BaseModel):
    db_path: str = "workout.db"
    weight_unit: str = "kg"
    volume_window_weeks: int = Field(12, gt=0)
    progress_window_weeks: int = Field(8, gt=0)
    frequent_exercise_limit: int = Field(5, gt=0)
    neutral_change_threshold: float = Field(1.0, ge=0)
    activity_buckets: int = Field(12, gt=0)
    log_level: str = "INFO"

def validate_settings(data: dict) -> EngineSettings:
    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
