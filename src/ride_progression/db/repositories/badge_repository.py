"""SQLite-backed repository for performance badges."""

import json
import sqlite3
from typing import List, Optional, Set

from ...models.achievements import Badge, BadgeType
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class BadgeRepository(SQLiteRepository[Badge]):
    """Append-only store of badges, unique per (user_id, name)."""

    def _row_to_badge(self, row: sqlite3.Row) -> Badge:
        return Badge(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            type=BadgeType(row["type"]),
            description=row["description"],
            awarded_at=from_db_datetime(row["awarded_at"]),
            metadata=json.loads(row["metadata_json"]) if row["metadata_json"] else {},
            notified=bool(row["notified"]),
        )

    def insert_if_absent(self, badge: Badge) -> Optional[Badge]:
        """
        Store a badge unless the user already holds one with this name.

        Returns:
            The stored badge with its ID, or None if it already existed
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO badges
                (user_id, name, type, description, awarded_at, metadata_json, notified)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    badge.user_id,
                    badge.name,
                    badge.type.value,
                    badge.description,
                    to_db_datetime(badge.awarded_at),
                    json.dumps(badge.metadata),
                    int(badge.notified),
                ),
            )
            if cursor.rowcount == 0:
                return None
            return badge.model_copy(update={"id": cursor.lastrowid})

    def get(self, badge_id: str) -> Optional[Badge]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM badges WHERE id = ?",
                (int(badge_id),),
            ).fetchone()
        return self._row_to_badge(row) if row else None

    def owned_names(self, user_id: str) -> Set[str]:
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT name FROM badges WHERE user_id = ?",
                (user_id,),
            ).fetchall()
        return {row["name"] for row in rows}

    def list_for_user(self, user_id: str) -> List[Badge]:
        """Badges for a user, most recent first."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM badges WHERE user_id = ? ORDER BY awarded_at DESC, id DESC",
                (user_id,),
            ).fetchall()
        return [self._row_to_badge(row) for row in rows]

    def mark_notified(self, badge_id: int) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "UPDATE badges SET notified = 1 WHERE id = ? AND notified = 0",
                (badge_id,),
            )
            return cursor.rowcount == 1
