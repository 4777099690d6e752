"""SQLite-backed repository for goals and their linked sessions."""

import json
import sqlite3
from datetime import datetime
from typing import List, Optional

from ...models.goals import (
    Goal,
    GoalSession,
    GoalStatus,
    GoalType,
    ProgressData,
    WeeklyProgress,
    WeightEntry,
)
from ...models.session import SessionSummary
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class GoalRepository(SQLiteRepository[Goal]):
    """
    SQLite-backed repository for Goal entities.

    Weekly buckets and the weight curve are stored as JSON documents on the
    goal row; linked sessions live in ``goal_sessions`` whose primary key
    makes each link unique.
    """

    def _row_to_goal(self, row: sqlite3.Row, linked_sessions: List[str]) -> Goal:
        return Goal(
            id=row["id"],
            user_id=row["user_id"],
            goal_type=GoalType(row["goal_type"]),
            status=GoalStatus(row["status"]),
            start_date=from_db_datetime(row["start_date"]),
            target_date=from_db_datetime(row["target_date"]),
            current_weight=row["current_weight"],
            target_weight=row["target_weight"],
            progress_data=ProgressData(
                total_distance=row["total_distance"] or 0.0,
                total_calories=row["total_calories"] or 0.0,
                total_workouts=row["total_workouts"] or 0,
                completion_percentage=row["completion_percentage"] or 0.0,
                last_updated=from_db_datetime(row["last_updated"]),
            ),
            weekly_progress=[
                WeeklyProgress.model_validate(w)
                for w in json.loads(row["weekly_progress_json"] or "[]")
            ],
            weight_history=[
                WeightEntry.model_validate(w)
                for w in json.loads(row["weight_history_json"] or "[]")
            ],
            linked_sessions=linked_sessions,
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )

    def _goal_values(self, goal: Goal) -> dict:
        progress = goal.progress_data
        return {
            "user_id": goal.user_id,
            "goal_type": goal.goal_type.value,
            "status": goal.status.value,
            "start_date": to_db_datetime(goal.start_date),
            "target_date": to_db_datetime(goal.target_date),
            "current_weight": goal.current_weight,
            "target_weight": goal.target_weight,
            "total_distance": progress.total_distance,
            "total_calories": progress.total_calories,
            "total_workouts": progress.total_workouts,
            "completion_percentage": progress.completion_percentage,
            "last_updated": to_db_datetime(progress.last_updated),
            "weekly_progress_json": json.dumps(
                [w.model_dump(mode="json") for w in goal.weekly_progress]
            ),
            "weight_history_json": json.dumps(
                [w.model_dump(mode="json") for w in goal.weight_history]
            ),
        }

    def create(self, goal: Goal, now: datetime) -> Goal:
        """
        Insert a new goal.

        Raises:
            sqlite3.IntegrityError: If the goal ID already exists
        """
        values = self._goal_values(goal)
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO goals
                (id, user_id, goal_type, status, start_date, target_date,
                 current_weight, target_weight, total_distance, total_calories,
                 total_workouts, completion_percentage, last_updated,
                 weekly_progress_json, weight_history_json, created_at, updated_at)
                VALUES (:id, :user_id, :goal_type, :status, :start_date, :target_date,
                        :current_weight, :target_weight, :total_distance, :total_calories,
                        :total_workouts, :completion_percentage, :last_updated,
                        :weekly_progress_json, :weight_history_json, :created_at, :updated_at)
                """,
                {**values, "id": goal.id, "created_at": stamp, "updated_at": stamp},
            )
        return goal.model_copy(update={"created_at": now, "updated_at": now})

    def get(self, goal_id: str) -> Optional[Goal]:
        """Retrieve a goal with its linked session IDs."""
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
            if not row:
                return None
            linked = conn.execute(
                """
                SELECT session_id FROM goal_sessions
                WHERE goal_id = ?
                ORDER BY end_time, linked_at
                """,
                (goal_id,),
            ).fetchall()
        return self._row_to_goal(row, [r["session_id"] for r in linked])

    def save_with_session(
        self,
        goal: Goal,
        summary: SessionSummary,
        now: datetime,
    ) -> bool:
        """
        Link a session and store the updated goal in one transaction.

        Args:
            goal: Goal already updated with the session's contribution
            summary: The session being linked
            now: Link/update timestamp

        Returns:
            True if saved, False if the session was already linked (nothing
            is written in that case)
        """
        values = self._goal_values(goal)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO goal_sessions
                (goal_id, session_id, end_time, distance, calories, avg_speed,
                 duration_seconds, linked_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    goal.id,
                    summary.session_id,
                    to_db_datetime(summary.ended_at(now)),
                    summary.total_distance,
                    summary.total_calories,
                    summary.avg_speed,
                    summary.duration_seconds,
                    to_db_datetime(now),
                ),
            )
            if cursor.rowcount == 0:
                return False

            self._update(conn, goal.id, values, now)
        return True

    def _update(self, conn: sqlite3.Connection, goal_id: str, values: dict, now: datetime) -> None:
        conn.execute(
            """
            UPDATE goals SET
                user_id = :user_id,
                goal_type = :goal_type,
                status = :status,
                start_date = :start_date,
                target_date = :target_date,
                current_weight = :current_weight,
                target_weight = :target_weight,
                total_distance = :total_distance,
                total_calories = :total_calories,
                total_workouts = :total_workouts,
                completion_percentage = :completion_percentage,
                last_updated = :last_updated,
                weekly_progress_json = :weekly_progress_json,
                weight_history_json = :weight_history_json,
                updated_at = :updated_at
            WHERE id = :id
            """,
            {**values, "id": goal_id, "updated_at": to_db_datetime(now)},
        )

    def list_sessions(self, goal_id: str, limit: int = 50, offset: int = 0) -> List[GoalSession]:
        """Sessions linked to a goal, newest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM goal_sessions
                WHERE goal_id = ?
                ORDER BY end_time DESC
                LIMIT ? OFFSET ?
                """,
                (goal_id, limit, offset),
            ).fetchall()
        return [
            GoalSession(
                session_id=row["session_id"],
                end_time=from_db_datetime(row["end_time"]),
                distance=row["distance"] or 0.0,
                calories=row["calories"] or 0.0,
                avg_speed=row["avg_speed"] or 0.0,
                duration_seconds=row["duration_seconds"] or 0.0,
            )
            for row in rows
        ]

    def count_sessions(self, goal_id: str) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) AS cnt FROM goal_sessions WHERE goal_id = ?",
                (goal_id,),
            ).fetchone()["cnt"]

    def list_for_user(
        self,
        user_id: str,
        status: Optional[GoalStatus] = None,
    ) -> List[Goal]:
        """Goals owned by a user, newest first."""
        query = "SELECT id FROM goals WHERE user_id = ?"
        params: list = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY created_at DESC"

        with self._get_connection() as conn:
            ids = [row["id"] for row in conn.execute(query, params).fetchall()]
        return [goal for goal in (self.get(goal_id) for goal_id in ids) if goal]
