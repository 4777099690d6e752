"""SQLite-backed repository for user notifications.

A notification is dispatched through one channel at most. The channel is
claimed with a conditional UPDATE before anything is sent, so concurrent
dispatchers cannot both deliver the same notification.
"""

import json
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional

from ...models.notifications import (
    DeliveryChannel,
    Notification,
    NotificationAction,
    NotificationPriority,
    NotificationStats,
    NotificationType,
)
from ..database import from_db_datetime, to_db_datetime
from .base import SQLiteRepository


class NotificationRepository(SQLiteRepository[Notification]):
    """SQLite-backed repository for Notification entities."""

    def _row_to_notification(self, row: sqlite3.Row) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            type=NotificationType(row["type"]),
            title=row["title"],
            message=row["message"],
            priority=NotificationPriority(row["priority"]),
            actions=[
                NotificationAction.model_validate(a)
                for a in json.loads(row["actions_json"] or "[]")
            ],
            data=json.loads(row["data_json"] or "{}"),
            expires_at=from_db_datetime(row["expires_at"]),
            created_at=from_db_datetime(row["created_at"]),
            is_read=bool(row["is_read"]),
            read_at=from_db_datetime(row["read_at"]),
            channel=DeliveryChannel(row["channel"]) if row["channel"] else None,
            dispatched_at=from_db_datetime(row["dispatched_at"]),
            delivery_error=row["delivery_error"],
        )

    def create(self, notification: Notification) -> Notification:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO notifications
                (id, user_id, type, title, message, priority, actions_json,
                 data_json, expires_at, created_at, is_read)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0)
                """,
                (
                    notification.id,
                    notification.user_id,
                    notification.type.value,
                    notification.title,
                    notification.message,
                    notification.priority.value,
                    json.dumps([a.model_dump(mode="json") for a in notification.actions]),
                    json.dumps(notification.data, default=str),
                    to_db_datetime(notification.expires_at),
                    to_db_datetime(notification.created_at),
                ),
            )
        return notification

    def get(self, notification_id: str) -> Optional[Notification]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM notifications WHERE id = ?",
                (notification_id,),
            ).fetchone()
        return self._row_to_notification(row) if row else None

    def claim_channel(
        self,
        notification_id: str,
        channel: DeliveryChannel,
        now: datetime,
    ) -> bool:
        """
        Claim the delivery channel for an undispatched notification.

        Returns:
            True if this caller now owns delivery, False if it was already claimed
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE notifications
                SET channel = ?, dispatched_at = ?
                WHERE id = ? AND channel IS NULL
                """,
                (channel.value, to_db_datetime(now), notification_id),
            )
            return cursor.rowcount == 1

    def switch_channel(
        self,
        notification_id: str,
        from_channel: DeliveryChannel,
        to_channel: DeliveryChannel,
        now: datetime,
        error: Optional[str] = None,
    ) -> bool:
        """Move an owned claim to another channel after a failed send."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE notifications
                SET channel = ?, dispatched_at = ?, delivery_error = ?
                WHERE id = ? AND channel = ?
                """,
                (
                    to_channel.value,
                    to_db_datetime(now),
                    error,
                    notification_id,
                    from_channel.value,
                ),
            )
            return cursor.rowcount == 1

    def record_delivery_error(self, notification_id: str, error: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                "UPDATE notifications SET delivery_error = ? WHERE id = ?",
                (error, notification_id),
            )

    def mark_read(self, notification_id: str, user_id: str, now: datetime) -> bool:
        """
        Mark one of the user's notifications as read.

        Returns:
            True if the notification exists for this user
        """
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE notifications
                SET is_read = 1, read_at = COALESCE(read_at, ?)
                WHERE id = ? AND user_id = ?
                """,
                (to_db_datetime(now), notification_id, user_id),
            )
            return cursor.rowcount == 1

    def mark_all_read(self, user_id: str, now: datetime) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                UPDATE notifications
                SET is_read = 1, read_at = ?
                WHERE user_id = ? AND is_read = 0
                """,
                (to_db_datetime(now), user_id),
            )
            return cursor.rowcount

    def count_unread(self, user_id: str, now: datetime) -> int:
        with self._get_connection() as conn:
            return conn.execute(
                """
                SELECT COUNT(*) AS cnt FROM notifications
                WHERE user_id = ? AND is_read = 0
                  AND (expires_at IS NULL OR expires_at > ?)
                """,
                (user_id, to_db_datetime(now)),
            ).fetchone()["cnt"]

    def list_for_user(
        self,
        user_id: str,
        now: datetime,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        """Unexpired notifications for a user, newest first."""
        query = """
            SELECT * FROM notifications
            WHERE user_id = ? AND (expires_at IS NULL OR expires_at > ?)
        """
        params: list = [user_id, to_db_datetime(now)]
        if unread_only:
            query += " AND is_read = 0"
        if notification_type is not None:
            query += " AND type = ?"
            params.append(notification_type.value)
        query += " ORDER BY created_at DESC, id LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with self._get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_notification(row) for row in rows]

    def stats(self, user_id: str, now: datetime) -> NotificationStats:
        """Counts over the user's unexpired notifications."""
        stamp = to_db_datetime(now)
        with self._get_connection() as conn:
            totals = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(CASE WHEN is_read = 0 THEN 1 ELSE 0 END), 0) AS unread
                FROM notifications
                WHERE user_id = ? AND (expires_at IS NULL OR expires_at > ?)
                """,
                (user_id, stamp),
            ).fetchone()
            by_type = conn.execute(
                """
                SELECT type, COUNT(*) AS cnt FROM notifications
                WHERE user_id = ? AND (expires_at IS NULL OR expires_at > ?)
                GROUP BY type
                """,
                (user_id, stamp),
            ).fetchall()
            by_channel = conn.execute(
                """
                SELECT channel, COUNT(*) AS cnt FROM notifications
                WHERE user_id = ? AND channel IS NOT NULL
                  AND (expires_at IS NULL OR expires_at > ?)
                GROUP BY channel
                """,
                (user_id, stamp),
            ).fetchall()

        return NotificationStats(
            total=totals["total"],
            unread=totals["unread"],
            by_type={row["type"]: row["cnt"] for row in by_type},
            by_channel={row["channel"]: row["cnt"] for row in by_channel},
        )

    def delete_read_older_than(self, days: int, now: datetime) -> int:
        """
        Delete read notifications created more than ``days`` ago.

        Returns:
            Number of notifications deleted
        """
        cutoff = to_db_datetime(now - timedelta(days=days))
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM notifications WHERE is_read = 1 AND created_at < ?",
                (cutoff,),
            )
            return cursor.rowcount

    def delete_expired(self, now: datetime) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM notifications WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (to_db_datetime(now),),
            )
            return cursor.rowcount
