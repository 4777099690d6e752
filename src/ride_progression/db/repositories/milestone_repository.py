"""SQLite-backed repository for lifetime milestones."""

import sqlite3
from typing import List, Optional

from ...models.achievements import Milestone, MilestoneType
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class MilestoneRepository(SQLiteRepository[Milestone]):
    """
    Append-only store of milestones.

    The UNIQUE (user_id, type, value) constraint is what keeps a milestone
    from being awarded twice when two completions race.
    """

    def _row_to_milestone(self, row: sqlite3.Row) -> Milestone:
        return Milestone(
            id=row["id"],
            user_id=row["user_id"],
            type=MilestoneType(row["type"]),
            value=row["value"],
            unit=row["unit"],
            achieved_at=from_db_datetime(row["achieved_at"]),
            xp_reward=row["xp_reward"],
            reward_granted=bool(row["reward_granted"]),
            notified=bool(row["notified"]),
        )

    def insert_if_absent(self, milestone: Milestone) -> Optional[Milestone]:
        """
        Store a milestone unless the user already has it.

        Returns:
            The stored milestone with its ID, or None if it already existed
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO milestones
                (user_id, type, value, unit, achieved_at, xp_reward, reward_granted, notified)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    milestone.user_id,
                    milestone.type.value,
                    milestone.value,
                    milestone.unit,
                    to_db_datetime(milestone.achieved_at),
                    milestone.xp_reward,
                    int(milestone.reward_granted),
                    int(milestone.notified),
                ),
            )
            if cursor.rowcount == 0:
                return None
            return milestone.model_copy(update={"id": cursor.lastrowid})

    def get(self, milestone_id: str) -> Optional[Milestone]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM milestones WHERE id = ?",
                (int(milestone_id),),
            ).fetchone()
        return self._row_to_milestone(row) if row else None

    def list_for_user(self, user_id: str, limit: Optional[int] = None) -> List[Milestone]:
        """Milestones for a user, most recent first."""
        query = "SELECT * FROM milestones WHERE user_id = ? ORDER BY achieved_at DESC, id DESC"
        params: list = [user_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_milestone(row) for row in rows]

    def mark_notified(self, milestone_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE milestones SET notified = 1 WHERE id = ? AND notified = 0",
                (milestone_id,),
            )
            return cursor.rowcount == 1

    def list_unrewarded(self, user_id: str) -> List[Milestone]:
        """Milestones whose bonus XP has not been added yet, oldest first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM milestones WHERE user_id = ? AND reward_granted = 0 ORDER BY id",
                (user_id,),
            ).fetchall()
        return [self._row_to_milestone(row) for row in rows]

    def claim_reward(self, milestone_id: int) -> bool:
        """
        Take the right to grant a milestone's bonus XP.

        Returns:
            True for exactly one caller per milestone until released
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE milestones SET reward_granted = 1 WHERE id = ? AND reward_granted = 0",
                (milestone_id,),
            )
            return cursor.rowcount == 1

    def release_reward(self, milestone_id: int) -> None:
        """Hand a claimed reward back after the grant failed."""
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE milestones SET reward_granted = 0 WHERE id = ?",
                (milestone_id,),
            )
