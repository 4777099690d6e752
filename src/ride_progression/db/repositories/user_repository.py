"""SQLite-backed repository for user progression counters.

XP and lifetime totals are changed with in-place increments so concurrent
completions never lose an update. Streak writes are a compare-and-set on the
``version`` column; the StreakTracker retries on conflict.
"""

import sqlite3
from datetime import date, datetime
from typing import List, Optional, Tuple

from ...exceptions import UserNotFoundError
from ...models.progression import (
    LifetimeStats,
    UserProgression,
    calculate_level,
    calculate_rank,
)
from ..database import from_db_date, from_db_datetime, to_db_date, to_db_datetime
from .base import SQLiteRepository


class UserProgressionRepository(SQLiteRepository[UserProgression]):
    """
    SQLite-backed repository for UserProgression entities.

    Rows are created alongside the user account and live for its lifetime.
    """

    def _row_to_progression(self, row: sqlite3.Row) -> UserProgression:
        """Convert a database row to a UserProgression entity."""
        return UserProgression(
            user_id=row["user_id"],
            xp=row["xp"] or 0,
            streak=row["streak"] or 0,
            longest_streak=row["longest_streak"] or 0,
            last_activity_date=from_db_date(row["last_activity_date"]),
            stats=LifetimeStats(
                total_distance=row["total_distance"] or 0.0,
                total_calories=row["total_calories"] or 0.0,
                total_workouts=row["total_workouts"] or 0,
            ),
            version=row["version"] or 0,
            created_at=from_db_datetime(row["created_at"]),
            updated_at=from_db_datetime(row["updated_at"]),
        )

    def create(self, user_id: str, now: datetime) -> UserProgression:
        """
        Create the progression record for a user, if it does not exist yet.

        Args:
            user_id: The user's unique identifier
            now: Creation timestamp

        Returns:
            The stored UserProgression (existing or new)
        """
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO user_progression (user_id, created_at, updated_at)
                VALUES (?, ?, ?)
                """,
                (user_id, stamp, stamp),
            )
            row = conn.execute(
                "SELECT * FROM user_progression WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return self._row_to_progression(row)

    def get(self, user_id: str) -> Optional[UserProgression]:
        """
        Retrieve a user's progression by ID.

        Args:
            user_id: The user's unique identifier

        Returns:
            The UserProgression if found, None otherwise
        """
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM user_progression WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return self._row_to_progression(row) if row else None

    def require(self, user_id: str) -> UserProgression:
        """Like get(), but raises UserNotFoundError when missing."""
        progression = self.get(user_id)
        if progression is None:
            raise UserNotFoundError(user_id)
        return progression

    def increment_xp(self, user_id: str, amount: int, now: datetime) -> Tuple[int, int]:
        """
        Atomically add XP and refresh the stored level and rank.

        Args:
            user_id: The user's unique identifier
            amount: XP to add (non-negative)
            now: Update timestamp

        Returns:
            Tuple of (previous_xp, new_xp)

        Raises:
            UserNotFoundError: If the user has no progression record
        """
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE user_progression
                SET xp = xp + ?, updated_at = ?
                WHERE user_id = ?
                """,
                (amount, stamp, user_id),
            )
            if cursor.rowcount == 0:
                raise UserNotFoundError(user_id)

            # The write lock taken by the UPDATE is held until commit, so this
            # read sees exactly our increment on top of every earlier one.
            new_xp = conn.execute(
                "SELECT xp FROM user_progression WHERE user_id = ?",
                (user_id,),
            ).fetchone()["xp"]

            level = calculate_level(new_xp)
            conn.execute(
                "UPDATE user_progression SET level = ?, rank = ? WHERE user_id = ?",
                (level, calculate_rank(level).value, user_id),
            )

        return new_xp - amount, new_xp

    def add_session_totals(
        self,
        user_id: str,
        distance: float,
        calories: float,
        now: datetime,
    ) -> LifetimeStats:
        """
        Atomically add one session to the lifetime totals.

        Returns:
            The lifetime totals including this session

        Raises:
            UserNotFoundError: If the user has no progression record
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE user_progression
                SET total_distance = total_distance + ?,
                    total_calories = total_calories + ?,
                    total_workouts = total_workouts + 1,
                    updated_at = ?
                WHERE user_id = ?
                """,
                (distance, calories, to_db_datetime(now), user_id),
            )
            if cursor.rowcount == 0:
                raise UserNotFoundError(user_id)

            row = conn.execute(
                """
                SELECT total_distance, total_calories, total_workouts
                FROM user_progression WHERE user_id = ?
                """,
                (user_id,),
            ).fetchone()

        return LifetimeStats(
            total_distance=row["total_distance"],
            total_calories=row["total_calories"],
            total_workouts=row["total_workouts"],
        )

    def compare_and_set_streak(
        self,
        user_id: str,
        expected_version: int,
        streak: int,
        longest_streak: int,
        last_activity_date: Optional[date],
        now: datetime,
    ) -> bool:
        """
        Write streak fields only if nobody else wrote since we read.

        Returns:
            True if the write applied, False on a version conflict
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE user_progression
                SET streak = ?,
                    longest_streak = ?,
                    last_activity_date = ?,
                    version = version + 1,
                    updated_at = ?
                WHERE user_id = ? AND version = ?
                """,
                (
                    streak,
                    longest_streak,
                    to_db_date(last_activity_date),
                    to_db_datetime(now),
                    user_id,
                    expected_version,
                ),
            )
            return cursor.rowcount == 1

    def list_user_ids(self, limit: int = 10000, offset: int = 0) -> List[str]:
        """List user IDs with a progression record, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT user_id FROM user_progression
                ORDER BY created_at, user_id
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return [row["user_id"] for row in rows]

    def get_leaderboard_position(self, user_id: str) -> Tuple[int, int]:
        """
        Position of a user when ranked by XP.

        Returns:
            Tuple of (position starting at 1, total users)
        """
        progression = self.require(user_id)
        with self._get_connection() as conn:
            higher = conn.execute(
                "SELECT COUNT(*) AS cnt FROM user_progression WHERE xp > ?",
                (progression.xp,),
            ).fetchone()["cnt"]
            total = conn.execute(
                "SELECT COUNT(*) AS cnt FROM user_progression"
            ).fetchone()["cnt"]
        return higher + 1, total
