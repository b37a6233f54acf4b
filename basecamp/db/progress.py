#!/usr/bin/env python3
"""
Progress store for a single course.
Persists attempt records and usage counters in a per-course SQLite database.
"""

import asyncio
import logging
import re
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, TypeVar

from ..config import get_storage_dir
from ..course.models import ExerciseProgress, UsageCounters
from ..errors import StorageUnavailableError


logger = logging.getLogger(__name__)

T = TypeVar('T')

SCHEMA = """
    CREATE TABLE IF NOT EXISTS exercise_progress (
        exercise_id TEXT PRIMARY KEY,
        completed INTEGER NOT NULL DEFAULT 0,
        last_attempt TEXT,
        completed_at TEXT
    );

    CREATE TABLE IF NOT EXISTS course_metadata (
        course_name TEXT PRIMARY KEY,
        last_loaded TEXT,
        total_exercises INTEGER,
        completed_exercises INTEGER
    );

    CREATE TABLE IF NOT EXISTS user_preferences (
        course_name TEXT PRIMARY KEY,
        last_exercise TEXT,
        hints_used INTEGER DEFAULT 0,
        total_test_runs INTEGER DEFAULT 0
    );
"""


def sanitize_course_name(course_name: str) -> str:
    """Turn a course name into a filename-safe identifier"""
    return re.sub(r'[^a-zA-Z0-9]', '_', course_name)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class ProgressStore:
    """
    Attempt records and counters for one course.

    Every public operation is a coroutine; the SQLite work runs on a worker
    thread. Calls made before initialize() or after close() raise
    StorageUnavailableError.
    """

    def __init__(self, course_name: str, storage_dir: Optional[str] = None):
        self.course_name = course_name
        root = Path(storage_dir) if storage_dir else get_storage_dir()
        root.mkdir(parents=True, exist_ok=True)
        self.db_path = str(root / f"{sanitize_course_name(course_name)}.db")
        self.conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    async def initialize(self) -> None:
        """Open the database and create tables; safe to call again"""
        await asyncio.to_thread(self._initialize)

    def _initialize(self):
        with self._lock:
            if self.conn is None:
                self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
                self.conn.row_factory = sqlite3.Row
                logger.debug("Opened progress database %s", self.db_path)
            self.conn.executescript(SCHEMA)
            self.conn.commit()

    async def _run(self, operation: Callable[[sqlite3.Connection], T]) -> T:
        """Run operation(conn) on a worker thread under the store lock"""
        def work():
            with self._lock:
                if self.conn is None:
                    raise StorageUnavailableError(
                        f"Progress store for '{self.course_name}' is not initialized"
                    )
                return operation(self.conn)

        return await asyncio.to_thread(work)

    async def mark_completed(self, exercise_id: str) -> None:
        """Record a passing attempt"""
        def write(conn):
            now = _now()
            conn.execute("""
                INSERT OR REPLACE INTO exercise_progress
                (exercise_id, completed, last_attempt, completed_at)
                VALUES (?, 1, ?, ?)
            """, (exercise_id, now, now))
            conn.commit()

        await self._run(write)

    async def mark_attempted(self, exercise_id: str) -> None:
        """Record a failing attempt; replaces any earlier completion"""
        def write(conn):
            conn.execute("""
                INSERT OR REPLACE INTO exercise_progress
                (exercise_id, completed, last_attempt)
                VALUES (?, 0, ?)
            """, (exercise_id, _now()))
            conn.commit()

        await self._run(write)

    async def get_progress(self, exercise_id: str) -> Optional[ExerciseProgress]:
        """Attempt record for one exercise, or None"""
        def read(conn):
            row = conn.execute(
                "SELECT * FROM exercise_progress WHERE exercise_id = ?",
                (exercise_id,)
            ).fetchone()
            return self._row_to_progress(row) if row else None

        return await self._run(read)

    async def get_all_progress(self) -> Dict[str, ExerciseProgress]:
        """All attempt records keyed by exercise id"""
        def read(conn):
            rows = conn.execute("SELECT * FROM exercise_progress").fetchall()
            return {row['exercise_id']: self._row_to_progress(row) for row in rows}

        return await self._run(read)

    async def reset_progress(self) -> None:
        """Delete every attempt record for the course"""
        def write(conn):
            conn.execute("DELETE FROM exercise_progress")
            conn.commit()

        await self._run(write)
        logger.info("Progress reset for course %s", self.course_name)

    async def increment_test_runs(self) -> int:
        """Add one to the test run counter and return the new value"""
        return await self._increment('total_test_runs')

    async def increment_hints_used(self) -> int:
        """Add one to the hint counter and return the new value"""
        return await self._increment('hints_used')

    async def _increment(self, column: str) -> int:
        def write(conn):
            conn.execute(f"""
                INSERT INTO user_preferences (course_name, {column})
                VALUES (?, 1)
                ON CONFLICT(course_name) DO UPDATE
                SET {column} = COALESCE({column}, 0) + 1
            """, (self.course_name,))
            conn.commit()
            row = conn.execute(
                f"SELECT {column} FROM user_preferences WHERE course_name = ?",
                (self.course_name,)
            ).fetchone()
            return row[0]

        return await self._run(write)

    async def get_counters(self) -> UsageCounters:
        def read(conn):
            row = conn.execute(
                "SELECT hints_used, total_test_runs FROM user_preferences WHERE course_name = ?",
                (self.course_name,)
            ).fetchone()
            if not row:
                return UsageCounters()
            return UsageCounters(
                test_runs=row['total_test_runs'] or 0,
                hints_used=row['hints_used'] or 0,
            )

        return await self._run(read)

    async def set_last_exercise(self, exercise_id: str) -> None:
        """Remember the exercise the learner last worked on"""
        def write(conn):
            conn.execute("""
                INSERT INTO user_preferences (course_name, last_exercise)
                VALUES (?, ?)
                ON CONFLICT(course_name) DO UPDATE SET last_exercise = excluded.last_exercise
            """, (self.course_name, exercise_id))
            conn.commit()

        await self._run(write)

    async def get_last_exercise(self) -> Optional[str]:
        def read(conn):
            row = conn.execute(
                "SELECT last_exercise FROM user_preferences WHERE course_name = ?",
                (self.course_name,)
            ).fetchone()
            return row['last_exercise'] if row else None

        return await self._run(read)

    async def update_course_metadata(self, total_exercises: int, completed_exercises: int) -> None:
        """Cache the course totals seen at the last load"""
        def write(conn):
            conn.execute("""
                INSERT OR REPLACE INTO course_metadata
                (course_name, last_loaded, total_exercises, completed_exercises)
                VALUES (?, ?, ?, ?)
            """, (self.course_name, _now(), total_exercises, completed_exercises))
            conn.commit()

        await self._run(write)

    async def get_course_metadata(self) -> Optional[Dict]:
        def read(conn):
            row = conn.execute(
                "SELECT * FROM course_metadata WHERE course_name = ?",
                (self.course_name,)
            ).fetchone()
            return dict(row) if row else None

        return await self._run(read)

    def _row_to_progress(self, row: sqlite3.Row) -> ExerciseProgress:
        return ExerciseProgress(
            exercise_id=row['exercise_id'],
            completed=row['completed'] == 1,
            last_attempt=_parse_time(row['last_attempt']),
            completed_at=_parse_time(row['completed_at']),
        )

    def close(self):
        """Close database connection"""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None
