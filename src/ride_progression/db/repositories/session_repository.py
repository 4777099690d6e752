"""SQLite-backed log of processed session completions.

Recording is insert-if-absent on (user_id, session_id), which makes a
replayed completion event detectable before anything else is written.
Each pipeline step that finishes is logged against the session, so a replay
after a transient failure re-runs only the steps that did not.
"""

import sqlite3
from datetime import datetime
from typing import Optional, Set

from ...models.goals import GoalSession
from ...models.session import SessionSummary
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class SessionLogRepository(SQLiteRepository[GoalSession]):
    """Repository for the completed-session log."""

    def _row_to_session(self, row: sqlite3.Row) -> GoalSession:
        return GoalSession(
            session_id=row["session_id"],
            end_time=from_db_datetime(row["end_time"]),
            distance=row["total_distance"] or 0.0,
            calories=row["total_calories"] or 0.0,
            avg_speed=row["avg_speed"] or 0.0,
            duration_seconds=row["duration_seconds"] or 0.0,
        )

    def record(
        self,
        user_id: str,
        summary: SessionSummary,
        goal_id: Optional[str],
        now: datetime,
    ) -> bool:
        """
        Record a completed session.

        Returns:
            True if this is the first time the session was recorded
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO completed_sessions
                (user_id, session_id, goal_id, total_distance, total_calories,
                 duration_seconds, avg_speed, avg_power, end_time, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user_id,
                    summary.session_id,
                    goal_id,
                    summary.total_distance,
                    summary.total_calories,
                    summary.duration_seconds,
                    summary.avg_speed,
                    summary.avg_power,
                    to_db_datetime(summary.ended_at(now)),
                    to_db_datetime(now),
                ),
            )
            return cursor.rowcount == 1

    def get(self, session_id: str) -> Optional[GoalSession]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM completed_sessions WHERE session_id = ?",
                (session_id,),
            ).fetchone()
        return self._row_to_session(row) if row else None

    def completed_steps(self, user_id: str, session_id: str) -> Set[str]:
        """Names of the pipeline steps already finished for a session."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT step FROM session_steps WHERE user_id = ? AND session_id = ?",
                (user_id, session_id),
            ).fetchall()
        return {row["step"] for row in rows}

    def mark_step(self, user_id: str, session_id: str, step: str, now: datetime) -> bool:
        """
        Log a finished pipeline step.

        Returns:
            True if the step was not logged before
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO session_steps (user_id, session_id, step, completed_at)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, session_id, step, to_db_datetime(now)),
            )
            return cursor.rowcount == 1
