import os
import sys
import sqlite3
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncBaseRepository,
    AsyncExerciseRepository,
    AsyncGoalRepository,
    AsyncSetRepository,
    AsyncWorkoutRepository,
    StatsCacheRepository,
)
from models import MuscleGroup


class NumberRepository(AsyncBaseRepository):
    async def init_db(self) -> None:
        async with self._async_connection() as conn:
            await conn.execute("CREATE TABLE IF NOT EXISTS numbers (val INTEGER)")
            await conn.commit()

    async def add(self, val: int) -> int:
        return await self.execute("INSERT INTO numbers (val) VALUES (?)", (val,))

    async def all(self):
        rows = await self.fetch_all("SELECT val FROM numbers")
        return [r[0] for r in rows]


@pytest.mark.asyncio
async def test_async_repository(tmp_path):
    repo = NumberRepository(str(tmp_path / "test.db"))
    await repo.init_db()
    await repo.add(5)
    assert await repo.all() == [5]


@pytest.mark.asyncio
async def test_workout_with_sets_roundtrip(tmp_path):
    db_file = str(tmp_path / "workout.db")
    workouts = AsyncWorkoutRepository(db_file)
    sets = AsyncSetRepository(db_file)
    exercises = AsyncExerciseRepository(db_file)

    bench = await exercises.add("Bench Press", "chest")
    mystery = await exercises.add("Mystery Move", "neck")
    wid = await workouts.create("u1", "2024-01-08", 45, "heavy day")
    await sets.add(wid, bench, 5, 80.0)
    await sets.add(wid, mystery, 10, 20.0, rest_time_seconds=90)

    [workout] = await workouts.find_workouts_by_user("u1")
    assert workout.id == wid
    assert workout.notes == "heavy day"
    assert [s.order for s in workout.sets] == [1, 2]
    assert workout.sets[0].exercise.muscle_group is MuscleGroup.CHEST
    assert workout.sets[1].exercise.muscle_group is None
    assert workout.sets[1].rest_time_seconds == 90
    assert await workouts.find_workouts_by_user("someone-else") == []


@pytest.mark.asyncio
async def test_find_workouts_date_filter_and_order(tmp_path):
    db_file = str(tmp_path / "workout.db")
    repo = AsyncWorkoutRepository(db_file)
    await repo.create("u1", "2024-01-10", 30)
    await repo.create("u1", "2024-01-02", 30)
    await repo.create("u1", "2024-01-05", 30)
    rows = await repo.find_workouts_by_user("u1")
    assert [w.date.isoformat() for w in rows] == ["2024-01-02", "2024-01-05", "2024-01-10"]
    rows = await repo.find_workouts_by_user("u1", start_date="2024-01-03", end_date="2024-01-06")
    assert [w.date.isoformat() for w in rows] == ["2024-01-05"]


@pytest.mark.asyncio
async def test_set_removal_keeps_order_contiguous(tmp_path):
    db_file = str(tmp_path / "sets.db")
    workouts = AsyncWorkoutRepository(db_file)
    sets = AsyncSetRepository(db_file)
    ex = await AsyncExerciseRepository(db_file).add("Squat", "legs")
    wid = await workouts.create("u1", "2024-01-01", 60)
    ids = [await sets.add(wid, ex, 5, w) for w in (100.0, 110.0, 120.0)]
    await sets.remove(ids[1])
    rows = await sets.fetch_for_workout(wid)
    assert [(s.weight, s.order) for s in rows] == [(100.0, 1), (120.0, 2)]
    with pytest.raises(ValueError):
        await sets.remove(ids[1])
    with pytest.raises(ValueError):
        await sets.add(wid, ex, 0, 100.0)


@pytest.mark.asyncio
async def test_workout_update_and_delete(tmp_path):
    db_file = str(tmp_path / "workout.db")
    workouts = AsyncWorkoutRepository(db_file)
    sets = AsyncSetRepository(db_file)
    ex = await AsyncExerciseRepository(db_file).add("Row", "back")
    wid = await workouts.create("u1", "2024-01-01", 60)
    await sets.add(wid, ex, 8, 60.0)
    await workouts.update(wid, date="2024-01-02", duration_minutes=50)
    workout = await workouts.fetch(wid)
    assert workout.date.isoformat() == "2024-01-02"
    assert workout.duration_minutes == 50
    await workouts.delete(wid)
    assert await sets.fetch_for_workout(wid) == []
    with pytest.raises(ValueError):
        await workouts.fetch(wid)
    with pytest.raises(ValueError):
        await workouts.delete(wid)


@pytest.mark.asyncio
async def test_exercise_repo(tmp_path):
    repo = AsyncExerciseRepository(str(tmp_path / "ex.db"))
    eid = await repo.add("Plank", "core", "mobility")
    ex = await repo.fetch(eid)
    assert ex.name == "Plank"
    assert ex.type.value == "mobility"
    assert [e.id for e in await repo.fetch_all_exercises()] == [eid]
    with pytest.raises(ValueError):
        await repo.fetch(999)


@pytest.mark.asyncio
async def test_cumulative_goal_sums_and_completes_once(tmp_path):
    repo = AsyncGoalRepository(str(tmp_path / "goals.db"))
    gid = await repo.create("u1", "frequency", 2, "workouts", title="Train twice")
    await repo.append_goal_progress(gid, 1, "Workout completed")
    goal = await repo.find_goal_by_id(gid)
    assert goal.current_value == 1
    assert not goal.is_completed
    await repo.append_goal_progress(gid, 1, "Workout completed")
    goal = await repo.find_goal_by_id(gid)
    assert goal.current_value == 2
    assert goal.is_completed
    first_completion = goal.completed_at
    assert first_completion is not None
    await repo.append_goal_progress(gid, 1)
    goal = await repo.find_goal_by_id(gid)
    assert goal.current_value == 3
    assert goal.completed_at == first_completion
    assert await repo.find_active_goals("u1") == []
    assert [g.id for g in await repo.find_completed_goals("u1")] == [gid]


@pytest.mark.asyncio
async def test_strength_goal_keeps_running_maximum(tmp_path):
    repo = AsyncGoalRepository(str(tmp_path / "goals.db"))
    gid = await repo.create("u1", "strength", 100, "kg")
    await repo.append_goal_progress(gid, 90)
    await repo.append_goal_progress(gid, 85)
    goal = await repo.find_goal_by_id(gid)
    assert goal.current_value == 90
    entries = await repo.fetch_progress(gid)
    assert [e.value for e in entries] == [90, 85]


@pytest.mark.asyncio
async def test_goal_repo_validation(tmp_path):
    repo = AsyncGoalRepository(str(tmp_path / "goals.db"))
    with pytest.raises(ValueError):
        await repo.create("u1", "strength", 0, "kg")
    with pytest.raises(ValueError):
        await repo.create("u1", "speed", 10, "kg")
    with pytest.raises(ValueError):
        await repo.find_goal_by_id(1)
    with pytest.raises(ValueError):
        await repo.append_goal_progress(1, 5)


@pytest.mark.asyncio
async def test_active_goals_ordered_by_target_date(tmp_path):
    repo = AsyncGoalRepository(str(tmp_path / "goals.db"))
    open_ended = await repo.create("u1", "volume", 1000, "kg")
    late = await repo.create("u1", "volume", 1000, "kg", target_date="2024-06-01")
    soon = await repo.create("u1", "volume", 1000, "kg", target_date="2024-02-01")
    await repo.create("u2", "volume", 1000, "kg")
    goals = await repo.find_active_goals("u1")
    assert [g.id for g in goals] == [soon, late, open_ended]


def test_stats_cache_repository(tmp_path):
    repo = StatsCacheRepository(str(tmp_path / "cache.db"))
    assert repo.load("usage_stats:u1") is None
    repo.save("usage_stats:u1", {"total_sessions": 1})
    repo.save("usage_stats:u2", {"total_sessions": 4})
    assert repo.load("usage_stats:u1") == {"total_sessions": 1}
    repo.clear("usage_stats:u1")
    assert repo.load("usage_stats:u1") is None
    repo.clear()
    assert repo.load("usage_stats:u2") is None


@pytest.mark.asyncio
async def test_create_with_sets_is_atomic(tmp_path):
    db_file = str(tmp_path / "workout.db")
    workouts = AsyncWorkoutRepository(db_file)
    ex = await AsyncExerciseRepository(db_file).add("Bench Press", "chest")
    wid = await workouts.create_with_sets(
        "u1", "2024-01-08", 45, None, [(ex, 5, 80.0, None), (ex, 3, 90.0, 120)]
    )
    workout = await workouts.fetch(wid)
    assert [(s.order, s.weight) for s in workout.sets] == [(1, 80.0), (2, 90.0)]
    with pytest.raises(ValueError):
        await workouts.create_with_sets("u1", "2024-01-09", 45, None, [(ex, 5, -1.0, None)])
    with pytest.raises(sqlite3.IntegrityError):
        await workouts.create_with_sets(
            "u1", "2024-01-09", 45, None, [(ex, 5, 80.0, None), (404, 5, 80.0, None)]
        )
    assert [w.id for w in await workouts.find_workouts_by_user("u1")] == [wid]


@pytest.mark.asyncio
async def test_long_history_loads_sets_in_chunks(tmp_path):
    db_file = str(tmp_path / "workout.db")
    workouts = AsyncWorkoutRepository(db_file)
    workouts.ID_CHUNK_SIZE = 2
    ex = await AsyncExerciseRepository(db_file).add("Squat", "legs")
    for day in range(1, 6):
        await workouts.create_with_sets(
            "u1", f"2024-01-0{day}", 30, None, [(ex, 5, 100.0 + day, None)]
        )
    rows = await workouts.find_workouts_by_user("u1")
    assert [w.sets[0].weight for w in rows] == [101.0, 102.0, 103.0, 104.0, 105.0]
