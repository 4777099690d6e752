"""SQLite-backed repository for quests."""

import sqlite3
from datetime import datetime
from typing import List, Optional

from ...models.quests import (
    Quest,
    QuestCategory,
    QuestDifficulty,
    QuestProgress,
    QuestRewards,
    QuestStatus,
    QuestType,
)
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class QuestRepository(SQLiteRepository[Quest]):
    """
    SQLite-backed repository for Quest entities.

    Progress writes are guarded on ``status = 'active'`` so a quest that was
    completed or expired by a concurrent writer is never moved back.
    """

    def _row_to_quest(self, row: sqlite3.Row) -> Quest:
        return Quest(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            description=row["description"],
            quest_type=QuestType(row["quest_type"]),
            category=QuestCategory(row["category"]),
            progress=QuestProgress(
                current=row["progress_current"],
                target=row["progress_target"],
            ),
            status=QuestStatus(row["status"]),
            start_date=from_db_datetime(row["start_date"]),
            end_date=from_db_datetime(row["end_date"]),
            rewards=QuestRewards(xp=row["reward_xp"], badge=row["reward_badge"]),
            difficulty=QuestDifficulty(row["difficulty"]),
            icon=row["icon"] or "🎯",
            completed_at=from_db_datetime(row["completed_at"]),
        )

    def insert_if_absent(self, quest: Quest, now: datetime) -> bool:
        """
        Insert a new quest unless one with the same ID exists.

        Returns:
            True if inserted
        """
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO quests
                (id, user_id, title, description, quest_type, category,
                 progress_current, progress_target, status, start_date, end_date,
                 reward_xp, reward_badge, difficulty, icon, completed_at,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    quest.id,
                    quest.user_id,
                    quest.title,
                    quest.description,
                    quest.quest_type.value,
                    quest.category.value,
                    quest.progress.current,
                    quest.progress.target,
                    quest.status.value,
                    to_db_datetime(quest.start_date),
                    to_db_datetime(quest.end_date),
                    quest.rewards.xp,
                    quest.rewards.badge,
                    quest.difficulty.value,
                    quest.icon,
                    to_db_datetime(quest.completed_at),
                    stamp,
                    stamp,
                ),
            )
            return cursor.rowcount == 1

    def get(self, quest_id: str) -> Optional[Quest]:
        with self._get_connection() as conn:
            row = conn.execute("SELECT * FROM quests WHERE id = ?", (quest_id,)).fetchone()
        return self._row_to_quest(row) if row else None

    def save_progress(self, quest: Quest, now: datetime) -> bool:
        """
        Persist progress and status for a quest that is still active.

        Returns:
            True if written, False if the stored quest is no longer active
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE quests
                SET progress_current = ?, status = ?, completed_at = ?, updated_at = ?
                WHERE id = ? AND status = 'active'
                """,
                (
                    quest.progress.current,
                    quest.status.value,
                    to_db_datetime(quest.completed_at),
                    to_db_datetime(now),
                    quest.id,
                ),
            )
            return cursor.rowcount == 1

    def list_for_user(
        self,
        user_id: str,
        status: Optional[QuestStatus] = None,
        quest_type: Optional[QuestType] = None,
    ) -> List[Quest]:
        """Quests for a user, newest first, optionally filtered."""
        query = "SELECT * FROM quests WHERE user_id = ?"
        params: list = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        if quest_type is not None:
            query += " AND quest_type = ?"
            params.append(quest_type.value)
        query += " ORDER BY start_date DESC, id"

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_quest(row) for row in rows]

    def list_active(self, user_id: str, now: datetime) -> List[Quest]:
        """Active quests that have not passed their end date, soonest ending first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM quests
                WHERE user_id = ? AND status = 'active' AND end_date >= ?
                ORDER BY end_date, id
                """,
                (user_id, to_db_datetime(now)),
            ).fetchall()
        return [self._row_to_quest(row) for row in rows]

    def count_by_status(self, user_id: str, status: QuestStatus) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                "SELECT COUNT(*) AS cnt FROM quests WHERE user_id = ? AND status = ?",
                (user_id, status.value),
            ).fetchone()["cnt"]

    def expire_overdue(self, now: datetime) -> int:
        """
        Move every active quest past its end date to expired.

        Returns:
            Number of quests expired
        """
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE quests
                SET status = 'expired', updated_at = ?
                WHERE status = 'active' AND end_date < ?
                """,
                (stamp, stamp),
            )
            return cursor.rowcount
