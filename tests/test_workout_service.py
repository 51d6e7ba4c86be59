import os
import sys
import datetime
import sqlite3
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncExerciseRepository,
    AsyncGoalRepository,
    AsyncWorkoutRepository,
)
from goal_tracking_service import GoalTrackingService
from stats_service import StatisticsService
from workout_service import WorkoutService


def build(db_file: str):
    workouts = AsyncWorkoutRepository(db_file)
    goals = AsyncGoalRepository(db_file)
    service = WorkoutService(workouts, GoalTrackingService(goals))
    return service, workouts, goals


@pytest.mark.asyncio
async def test_log_workout_updates_goals(tmp_path):
    db_file = str(tmp_path / "log.db")
    service, workouts, goals = build(db_file)
    bench = await AsyncExerciseRepository(db_file).add("Bench Press", "chest")
    volume_goal = await goals.create("u1", "volume", 1000, "kg")
    frequency_goal = await goals.create("u1", "frequency", 1, "workouts")

    workout, result = await service.log_workout(
        "u1",
        "2024-01-08",
        45,
        "push day",
        [
            {"exercise_id": bench, "reps": 5, "weight": 80.0},
            {"exercise_id": bench, "reps": 5, "weight": 80.0, "rest_time_seconds": 120},
        ],
    )
    assert result.ok
    assert [s.order for s in workout.sets] == [1, 2]
    assert workout.sets[1].rest_time_seconds == 120
    assert (await goals.find_goal_by_id(volume_goal)).current_value == 800.0
    assert result.completed_goal_ids == [frequency_goal]
    assert [g.id for g in await goals.find_active_goals("u1")] == [volume_goal]
    assert len(await workouts.find_workouts_by_user("u1")) == 1


@pytest.mark.asyncio
async def test_invalid_workout_is_rejected(tmp_path):
    service, workouts, _ = build(str(tmp_path / "log.db"))
    with pytest.raises(ValueError):
        await service.log_workout("u1", "2024-01-08", 0)
    assert await workouts.find_workouts_by_user("u1") == []


@pytest.mark.asyncio
async def test_first_workout_today_starts_streak(tmp_path):
    db_file = str(tmp_path / "log.db")
    service, workouts, _ = build(db_file)
    today = datetime.date.today()
    await service.log_workout("u1", today.isoformat(), 30)
    streak = await StatisticsService(workouts).streak("u1")
    assert streak["current"] == 1
    assert streak["at_risk"] is False


@pytest.mark.asyncio
async def test_rejected_set_stores_nothing(tmp_path):
    db_file = str(tmp_path / "log.db")
    service, workouts, goals = build(db_file)
    bench = await AsyncExerciseRepository(db_file).add("Bench Press", "chest")
    gid = await goals.create("u1", "frequency", 10, "workouts")
    with pytest.raises(ValueError):
        await service.log_workout(
            "u1",
            "2024-01-08",
            45,
            sets=[
                {"exercise_id": bench, "reps": 5, "weight": 80.0},
                {"exercise_id": bench, "reps": 0, "weight": 80.0},
            ],
        )
    assert await workouts.find_workouts_by_user("u1") == []
    assert (await goals.find_goal_by_id(gid)).current_value == 0


@pytest.mark.asyncio
async def test_unknown_exercise_rolls_back_workout(tmp_path):
    service, workouts, _ = build(str(tmp_path / "log.db"))
    with pytest.raises(sqlite3.IntegrityError):
        await service.log_workout(
            "u1", "2024-01-08", 45, sets=[{"exercise_id": 999, "reps": 5, "weight": 80.0}]
        )
    assert await workouts.find_workouts_by_user("u1") == []


@pytest.mark.asyncio
async def test_editing_a_workout_does_not_credit_goals_again(tmp_path):
    db_file = str(tmp_path / "log.db")
    service, _, goals = build(db_file)
    bench = await AsyncExerciseRepository(db_file).add("Bench Press", "chest")
    frequency = await goals.create("u1", "frequency", 10, "workouts")
    volume = await goals.create("u1", "volume", 10000, "kg")
    workout, _ = await service.log_workout(
        "u1", "2024-01-08", 30, sets=[{"exercise_id": bench, "reps": 5, "weight": 80.0}]
    )
    for note in ("felt strong", "left shoulder tight", "deload next week"):
        await service.update_workout(workout.id, notes=note)
    updated = await service.update_workout(workout.id, duration_minutes=40)
    assert updated.duration_minutes == 40
    assert updated.notes == "deload next week"
    assert updated.date == datetime.date(2024, 1, 8)
    assert (await goals.find_goal_by_id(frequency)).current_value == 1
    assert (await goals.find_goal_by_id(volume)).current_value == 400.0
    assert len(await goals.fetch_progress(frequency)) == 1
