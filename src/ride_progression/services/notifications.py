"""
Notification routing.

Every notification is stored first, then delivered through exactly one
channel: live when the user is connected, push otherwise. The channel is
claimed on the stored row before sending, so a notification can never be
delivered both live and by push.
"""

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..db.repositories.notification_repository import NotificationRepository
from ..exceptions import DeliveryError, NotificationNotFoundError
from ..models.notifications import (
    DeliveryChannel,
    Notification,
    NotificationRequest,
    NotificationStats,
    NotificationType,
)
from .base import BaseService, NotificationTransport, PresenceProvider


logger = logging.getLogger(__name__)


class NullPresence:
    """Presence provider for deployments without live connections."""

    def is_user_connected(self, user_id: str) -> bool:
        return False


class LoggingTransport:
    """Transport that only logs; used when no real transport is wired."""

    def send_live(self, user_id: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[live] {user_id}: {payload.get('title')}")

    def send_push(self, user_id: str, payload: Dict[str, Any]) -> None:
        logger.info(f"[push] {user_id}: {payload.get('title')}")


def build_payload(notification: Notification) -> Dict[str, Any]:
    """Client payload; carries the notification id for de-duplication."""
    payload = notification.model_dump(
        mode="json",
        by_alias=True,
        include={"id", "type", "title", "message", "priority", "actions", "data", "created_at", "expires_at"},
    )
    payload["notificationId"] = notification.id
    return payload


class NotificationRouter(BaseService):
    """Persists notifications and decides how each one reaches the user."""

    def __init__(
        self,
        notifications: NotificationRepository,
        presence: Optional[PresenceProvider] = None,
        transport: Optional[NotificationTransport] = None,
        ttl_days: int = 30,
        cleanup_read_after_days: int = 30,
        clock=None,
        logger=None,
    ) -> None:
        super().__init__(clock=clock, logger=logger)
        self._notifications = notifications
        self._presence = presence or NullPresence()
        self._transport = transport or LoggingTransport()
        self._ttl = timedelta(days=ttl_days)
        self._cleanup_read_after_days = cleanup_read_after_days

    def route(self, user_id: str, request: NotificationRequest) -> Notification:
        """
        Store a notification and deliver it through one channel.

        Delivery failures are recorded on the notification and never raised.

        Returns:
            The stored notification with its delivery state
        """
        now = self.now()
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=user_id,
            type=request.type,
            title=request.title,
            message=request.message,
            priority=request.priority,
            actions=request.actions,
            data=request.data,
            expires_at=request.expires_at or now + self._ttl,
            created_at=now,
        )
        self._notifications.create(notification)
        return self.dispatch(notification)

    def dispatch(self, notification: Notification) -> Notification:
        """Deliver a stored, not yet dispatched notification."""
        user_id = notification.user_id
        payload = build_payload(notification)

        if self._is_online(user_id):
            if not self._claim(notification, DeliveryChannel.LIVE):
                return self._reload(notification)
            try:
                self._send(DeliveryChannel.LIVE, user_id, payload)
                self.logger.debug(f"Notification {notification.id} sent live to user {user_id}")
                return self._reload(notification)
            except DeliveryError as e:
                # Nothing reached the user live, so push is still the only delivery
                self.logger.warning(
                    f"Live delivery of {notification.id} to user {user_id} failed, falling back to push: {e}"
                )
                if not self._notifications.switch_channel(
                    notification.id, DeliveryChannel.LIVE, DeliveryChannel.PUSH, self.now()
                ):
                    return self._reload(notification)
        elif not self._claim(notification, DeliveryChannel.PUSH):
            return self._reload(notification)

        try:
            self._send(DeliveryChannel.PUSH, user_id, payload)
            self.logger.debug(f"Notification {notification.id} pushed to user {user_id}")
        except DeliveryError as e:
            self.logger.error(f"Push delivery of {notification.id} to user {user_id} failed: {e}")
            self._notifications.record_delivery_error(notification.id, e.message)

        return self._reload(notification)

    def _send(self, channel: DeliveryChannel, user_id: str, payload: Dict[str, Any]) -> None:
        """
        Hand a payload to the transport.

        Raises:
            DeliveryError: If the transport failed, whatever it raised
        """
        send = self._transport.send_live if channel == DeliveryChannel.LIVE else self._transport.send_push
        try:
            send(user_id, payload)
        except DeliveryError:
            raise
        except Exception as e:
            raise DeliveryError(
                str(e) or e.__class__.__name__,
                channel=channel.value,
                details={"notification_id": payload.get("notificationId")},
            ) from e

    def _is_online(self, user_id: str) -> bool:
        try:
            return bool(self._presence.is_user_connected(user_id))
        except Exception as e:
            self.logger.warning(f"Presence check failed for user {user_id}, treating as offline: {e}")
            return False

    def _claim(self, notification: Notification, channel: DeliveryChannel) -> bool:
        claimed = self._notifications.claim_channel(notification.id, channel, self.now())
        if not claimed:
            self.logger.debug(f"Notification {notification.id} was already dispatched")
        return claimed

    def _reload(self, notification: Notification) -> Notification:
        return self._notifications.get(notification.id) or notification

    # -------------------------------------------------------------------------
    # Reads and housekeeping
    # -------------------------------------------------------------------------

    def get_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
        notification_type: Optional[NotificationType] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        return self._notifications.list_for_user(
            user_id,
            self.now(),
            unread_only=unread_only,
            notification_type=notification_type,
            limit=limit,
            offset=offset,
        )

    def get_unread_count(self, user_id: str) -> int:
        return self._notifications.count_unread(user_id, self.now())

    def get_stats(self, user_id: str) -> NotificationStats:
        return self._notifications.stats(user_id, self.now())

    def mark_as_read(self, user_id: str, notification_id: str) -> Notification:
        """
        Raises:
            NotificationNotFoundError: If the user has no such notification
        """
        if not self._notifications.mark_read(notification_id, user_id, self.now()):
            raise NotificationNotFoundError(notification_id)
        return self._notifications.get(notification_id)

    def mark_all_as_read(self, user_id: str) -> int:
        count = self._notifications.mark_all_read(user_id, self.now())
        self.logger.debug(f"Marked {count} notifications read for user {user_id}")
        return count

    def cleanup_expired(self, days_old: Optional[int] = None) -> int:
        """
        Delete read notifications older than ``days_old`` days.

        Unread notifications are kept regardless of age.
        """
        days = self._cleanup_read_after_days if days_old is None else days_old
        deleted = self._notifications.delete_read_older_than(days, self.now())
        self.logger.info(f"Cleaned up {deleted} read notifications older than {days} days")
        return deleted

    def purge_past_expiry(self) -> int:
        """Delete notifications whose expiry time has passed."""
        deleted = self._notifications.delete_expired(self.now())
        if deleted:
            self.logger.info(f"Purged {deleted} expired notifications")
        return deleted
