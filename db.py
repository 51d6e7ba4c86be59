import sqlite3
import aiosqlite
import os
import json
import datetime
from contextlib import contextmanager, asynccontextmanager
from typing import Dict, Iterable, List, Optional, Tuple

from models import (
    ExerciseRef,
    Goal,
    GoalProgressEntry,
    GoalType,
    SetRecord,
    WorkoutRecord,
)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    muscle_group TEXT,
                    type TEXT NOT NULL DEFAULT 'strength'
                );""",
            ["id", "name", "muscle_group", "type"],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL,
                    notes TEXT
                );""",
            ["id", "user_id", "date", "duration_minutes", "notes"],
        ),
        "sets": (
            """CREATE TABLE sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    reps INTEGER NOT NULL,
                    weight REAL NOT NULL DEFAULT 0,
                    rest_time_seconds INTEGER,
                    position INTEGER NOT NULL,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id)
                );""",
            [
                "id",
                "workout_id",
                "exercise_id",
                "reps",
                "weight",
                "rest_time_seconds",
                "position",
            ],
        ),
        "goals": (
            """CREATE TABLE goals (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id TEXT NOT NULL,
                    title TEXT NOT NULL DEFAULT '',
                    type TEXT NOT NULL,
                    target_value REAL NOT NULL,
                    current_value REAL NOT NULL DEFAULT 0,
                    unit TEXT NOT NULL,
                    start_date TEXT,
                    target_date TEXT,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at TEXT
                );""",
            [
                "id",
                "user_id",
                "title",
                "type",
                "target_value",
                "current_value",
                "unit",
                "start_date",
                "target_date",
                "is_completed",
                "completed_at",
            ],
        ),
        "goal_progress": (
            """CREATE TABLE goal_progress (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    goal_id INTEGER NOT NULL,
                    value REAL NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(goal_id) REFERENCES goals(id) ON DELETE CASCADE
                );""",
            ["id", "goal_id", "value", "notes", "created_at"],
        ),
        "stats_cache": (
            """CREATE TABLE stats_cache (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );""",
            ["key", "payload", "updated_at"],
        ),
    }

    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path or os.environ.get("WORKOUT_DB_PATH", "workout.db")
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_workouts_user_date ON workouts(user_id, date);"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_goal_progress_goal ON goal_progress(goal_id);"
            )
            conn.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        # rebuild with the current layout, keeping shared columns
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)
        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            conn.execute(f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;")
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            await conn.execute("PRAGMA foreign_keys=on;")
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows

    async def _delete_all(self, table: str) -> None:
        await self.execute(f"DELETE FROM {table};")


def _utc_now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async repository for the exercise catalog."""

    async def add(
        self,
        name: str,
        muscle_group: str | None = None,
        exercise_type: str = "strength",
    ) -> int:
        return await self.execute(
            "INSERT INTO exercises (name, muscle_group, type) VALUES (?, ?, ?);",
            (name, muscle_group, exercise_type),
        )

    async def fetch(self, exercise_id: int) -> ExerciseRef:
        rows = await self.fetch_all(
            "SELECT id, name, muscle_group, type FROM exercises WHERE id = ?;",
            (exercise_id,),
        )
        if not rows:
            raise ValueError("exercise not found")
        eid, name, group, ex_type = rows[0]
        return ExerciseRef(id=eid, name=name, muscle_group=group, type=ex_type)

    async def fetch_all_exercises(self) -> List[ExerciseRef]:
        rows = await self.fetch_all(
            "SELECT id, name, muscle_group, type FROM exercises ORDER BY id;"
        )
        return [
            ExerciseRef(id=eid, name=name, muscle_group=group, type=ex_type)
            for eid, name, group, ex_type in rows
        ]


class AsyncSetRepository(AsyncBaseRepository):
    """Async repository for sets belonging to a workout."""

    async def add(
        self,
        workout_id: int,
        exercise_id: int,
        reps: int,
        weight: float,
        rest_time_seconds: Optional[int] = None,
    ) -> int:
        if reps <= 0:
            raise ValueError("reps must be positive")
        if weight < 0:
            raise ValueError("weight must be non-negative")
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT COALESCE(MAX(position), 0) FROM sets WHERE workout_id = ?;",
                (workout_id,),
            )
            (last,) = await cursor.fetchone()
            cursor = await conn.execute(
                "INSERT INTO sets (workout_id, exercise_id, reps, weight, rest_time_seconds, position) "
                "VALUES (?, ?, ?, ?, ?, ?);",
                (workout_id, exercise_id, reps, weight, rest_time_seconds, last + 1),
            )
            return cursor.lastrowid

    async def fetch_for_workout(self, workout_id: int) -> List[SetRecord]:
        rows = await self.fetch_all(
            "SELECT id, workout_id, exercise_id, reps, weight, rest_time_seconds, position "
            "FROM sets WHERE workout_id = ? ORDER BY position;",
            (workout_id,),
        )
        return [
            SetRecord(
                id=sid,
                workout_id=wid,
                exercise_id=eid,
                reps=reps,
                weight=float(weight),
                rest_time_seconds=rest,
                order=pos,
            )
            for sid, wid, eid, reps, weight, rest, pos in rows
        ]

    async def remove(self, set_id: int) -> None:
        """Delete a set and close the gap in its workout's ordering."""
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT workout_id, position FROM sets WHERE id = ?;", (set_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise ValueError("set not found")
            workout_id, position = row
            await conn.execute("DELETE FROM sets WHERE id = ?;", (set_id,))
            await conn.execute(
                "UPDATE sets SET position = position - 1 WHERE workout_id = ? AND position > ?;",
                (workout_id, position),
            )


class AsyncWorkoutRepository(AsyncBaseRepository):
    """Async repository for workout table operations."""

    ID_CHUNK_SIZE = 500

    async def create(
        self,
        user_id: str,
        date: str,
        duration_minutes: int,
        notes: str | None = None,
    ) -> int:
        if duration_minutes <= 0:
            raise ValueError("duration must be positive")
        return await self.execute(
            "INSERT INTO workouts (user_id, date, duration_minutes, notes) VALUES (?, ?, ?, ?);",
            (user_id, date, duration_minutes, notes),
        )

    async def create_with_sets(
        self,
        user_id: str,
        date: str,
        duration_minutes: int,
        notes: str | None = None,
        sets: Iterable[Tuple[int, int, float, Optional[int]]] = (),
    ) -> int:
        """Insert a workout and its ``(exercise_id, reps, weight, rest)`` sets atomically.

        Sets are numbered 1..N in the given order. Nothing is stored when any
        row is rejected.
        """
        if duration_minutes <= 0:
            raise ValueError("duration must be positive")
        rows = list(sets)
        for _, reps, weight, _ in rows:
            if reps <= 0:
                raise ValueError("reps must be positive")
            if weight < 0:
                raise ValueError("weight must be non-negative")
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "INSERT INTO workouts (user_id, date, duration_minutes, notes) VALUES (?, ?, ?, ?);",
                (user_id, date, duration_minutes, notes),
            )
            workout_id = cursor.lastrowid
            for position, (exercise_id, reps, weight, rest) in enumerate(rows, start=1):
                await conn.execute(
                    "INSERT INTO sets (workout_id, exercise_id, reps, weight, rest_time_seconds, position) "
                    "VALUES (?, ?, ?, ?, ?, ?);",
                    (workout_id, exercise_id, reps, weight, rest, position),
                )
            return workout_id

    async def update(
        self,
        workout_id: int,
        date: str | None = None,
        duration_minutes: int | None = None,
        notes: str | None = None,
    ) -> None:
        rows = await self.fetch_all(
            "SELECT id FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not rows:
            raise ValueError("workout not found")
        fields = []
        params: list = []
        if date is not None:
            fields.append("date = ?")
            params.append(date)
        if duration_minutes is not None:
            if duration_minutes <= 0:
                raise ValueError("duration must be positive")
            fields.append("duration_minutes = ?")
            params.append(duration_minutes)
        if notes is not None:
            fields.append("notes = ?")
            params.append(notes)
        if fields:
            params.append(workout_id)
            await self.execute(
                f"UPDATE workouts SET {', '.join(fields)} WHERE id = ?;",
                tuple(params),
            )

    async def delete(self, workout_id: int) -> None:
        rows = await self.fetch_all(
            "SELECT id FROM workouts WHERE id = ?;", (workout_id,)
        )
        if not rows:
            raise ValueError("workout not found")
        async with self._async_connection() as conn:
            await conn.execute("DELETE FROM sets WHERE workout_id = ?;", (workout_id,))
            await conn.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))

    async def fetch(self, workout_id: int) -> WorkoutRecord:
        rows = await self.fetch_all(
            "SELECT id, user_id, date, duration_minutes, notes FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        workouts = await self._with_sets(rows)
        return workouts[0]

    async def find_workouts_by_user(
        self,
        user_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[WorkoutRecord]:
        """Return a user's workouts with ordered sets, oldest first."""
        query = (
            "SELECT id, user_id, date, duration_minutes, notes FROM workouts WHERE user_id = ?"
        )
        params: list = [user_id]
        if start_date:
            query += " AND date >= ?"
            params.append(start_date)
        if end_date:
            query += " AND date <= ?"
            params.append(end_date)
        query += " ORDER BY date ASC, id ASC;"
        rows = await self.fetch_all(query, tuple(params))
        return await self._with_sets(rows)

    async def _with_sets(self, rows: List[Tuple]) -> List[WorkoutRecord]:
        if not rows:
            return []
        ids = [r[0] for r in rows]
        set_rows: List[Tuple] = []
        # stay under SQLite's bound-parameter limit
        for i in range(0, len(ids), self.ID_CHUNK_SIZE):
            chunk = ids[i : i + self.ID_CHUNK_SIZE]
            marks = ", ".join("?" for _ in chunk)
            set_rows += await self.fetch_all(
                "SELECT s.id, s.workout_id, s.exercise_id, s.reps, s.weight, s.rest_time_seconds, "
                "s.position, e.name, e.muscle_group, e.type "
                "FROM sets s LEFT JOIN exercises e ON e.id = s.exercise_id "
                f"WHERE s.workout_id IN ({marks}) ORDER BY s.workout_id, s.position;",
                tuple(chunk),
            )
        by_workout: Dict[int, List[SetRecord]] = {}
        for sid, wid, eid, reps, weight, rest, pos, name, group, ex_type in set_rows:
            exercise = None
            if name is not None:
                exercise = ExerciseRef(
                    id=eid, name=name, muscle_group=group, type=ex_type
                )
            by_workout.setdefault(wid, []).append(
                SetRecord(
                    id=sid,
                    workout_id=wid,
                    exercise_id=eid,
                    reps=reps,
                    weight=float(weight),
                    rest_time_seconds=rest,
                    order=pos,
                    exercise=exercise,
                )
            )
        return [
            WorkoutRecord(
                id=wid,
                user_id=uid,
                date=date,
                duration_minutes=duration,
                notes=notes,
                sets=by_workout.get(wid, []),
            )
            for wid, uid, date, duration, notes in rows
        ]


class AsyncGoalRepository(AsyncBaseRepository):
    """Async repository for goals and their progress history.

    Appending progress recomputes ``current_value`` and completes the goal in
    the same transaction: cumulative goal types sum their entries, all other
    types keep the largest entry.
    """

    CUMULATIVE_TYPES = {GoalType.VOLUME, GoalType.FREQUENCY, GoalType.ENDURANCE}

    _COLUMNS = (
        "id, user_id, title, type, target_value, current_value, unit, "
        "start_date, target_date, is_completed, completed_at"
    )

    @staticmethod
    def _goal(row: Tuple) -> Goal:
        return Goal(
            id=row[0],
            user_id=row[1],
            title=row[2],
            type=row[3],
            target_value=float(row[4]),
            current_value=float(row[5]),
            unit=row[6],
            start_date=row[7],
            target_date=row[8],
            is_completed=bool(row[9]),
            completed_at=row[10],
        )

    async def create(
        self,
        user_id: str,
        goal_type: str,
        target_value: float,
        unit: str,
        title: str = "",
        start_date: str | None = None,
        target_date: str | None = None,
    ) -> int:
        if target_value <= 0:
            raise ValueError("target_value must be positive")
        GoalType(goal_type)
        return await self.execute(
            "INSERT INTO goals (user_id, title, type, target_value, current_value, unit, start_date, target_date, is_completed) "
            "VALUES (?, ?, ?, ?, 0, ?, ?, ?, 0);",
            (
                user_id,
                title,
                GoalType(goal_type).value,
                target_value,
                unit,
                start_date or datetime.date.today().isoformat(),
                target_date,
            ),
        )

    async def find_goal_by_id(self, goal_id: int) -> Goal:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM goals WHERE id = ?;", (goal_id,)
        )
        if not rows:
            raise ValueError("goal not found")
        return self._goal(rows[0])

    async def find_active_goals(self, user_id: str) -> List[Goal]:
        """Return goals not yet completed, nearest target date first."""
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM goals WHERE user_id = ? AND is_completed = 0 "
            "ORDER BY target_date IS NULL, target_date, id;",
            (user_id,),
        )
        return [self._goal(r) for r in rows]

    async def find_completed_goals(self, user_id: str) -> List[Goal]:
        rows = await self.fetch_all(
            f"SELECT {self._COLUMNS} FROM goals WHERE user_id = ? AND is_completed = 1 "
            "ORDER BY completed_at DESC, id DESC;",
            (user_id,),
        )
        return [self._goal(r) for r in rows]

    async def append_goal_progress(
        self, goal_id: int, value: float, notes: str | None = None
    ) -> GoalProgressEntry:
        if value < 0:
            raise ValueError("progress value must be non-negative")
        created_at = _utc_now()
        async with self._async_connection() as conn:
            cursor = await conn.execute(
                "SELECT type FROM goals WHERE id = ?;", (goal_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise ValueError("goal not found")
            goal_type = GoalType(row[0])
            cursor = await conn.execute(
                "INSERT INTO goal_progress (goal_id, value, notes, created_at) VALUES (?, ?, ?, ?);",
                (goal_id, value, notes, created_at),
            )
            entry_id = cursor.lastrowid
            agg = "SUM" if goal_type in self.CUMULATIVE_TYPES else "MAX"
            await conn.execute(
                "UPDATE goals SET current_value = "
                f"(SELECT COALESCE({agg}(value), 0) FROM goal_progress WHERE goal_id = ?) "
                "WHERE id = ?;",
                (goal_id, goal_id),
            )
            await conn.execute(
                "UPDATE goals SET is_completed = 1, completed_at = ? "
                "WHERE id = ? AND is_completed = 0 AND current_value >= target_value;",
                (created_at, goal_id),
            )
        return GoalProgressEntry(
            id=entry_id,
            goal_id=goal_id,
            value=value,
            notes=notes,
            created_at=created_at,
        )

    async def fetch_progress(self, goal_id: int) -> List[GoalProgressEntry]:
        rows = await self.fetch_all(
            "SELECT id, goal_id, value, notes, created_at FROM goal_progress "
            "WHERE goal_id = ? ORDER BY id;",
            (goal_id,),
        )
        return [
            GoalProgressEntry(
                id=eid, goal_id=gid, value=float(value), notes=notes, created_at=created
            )
            for eid, gid, value, notes, created in rows
        ]


class StatsCacheRepository(BaseRepository):
    """Repository managing cached statistics as JSON documents."""

    def load(self, key: str) -> dict | None:
        rows = self.fetch_all(
            "SELECT payload FROM stats_cache WHERE key = ?;", (key,)
        )
        if not rows:
            return None
        return json.loads(rows[0][0])

    def save(self, key: str, payload: dict) -> None:
        self.execute(
            "INSERT OR REPLACE INTO stats_cache (key, payload, updated_at) VALUES (?, ?, ?);",
            (key, json.dumps(payload), _utc_now()),
        )

    def clear(self, key: str | None = None) -> None:
        if key is None:
            self._delete_all("stats_cache")
        else:
            self.execute("DELETE FROM stats_cache WHERE key = ?;", (key,))
