"""Notification service - in-app notifications and per-channel delivery records"""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthorizationError, NotFoundError
from ...models import User
from ...models_notification import Notification
from ...utils.dates import to_naive_utc, utcnow
from .repository import NotificationRepository
from .schemas import AnnouncementCreate, DeliveryUpdate

module_logger = logging.getLogger(__name__)


class NotificationService:
    """Service layer for notifications"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = NotificationRepository()
        self.logger = logger or module_logger

    def notify(
        self,
        recipient_id: int,
        notification_type: str,
        title: str,
        message: str,
        sender_id: Optional[int] = None,
        data: Optional[dict[str, Any]] = None,
        priority: str = "medium",
        related: Optional[tuple[str, int]] = None,
        action_url: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> Notification:
        """Queue a notification in the current unit of work"""
        related_type, related_id = related if related else (None, None)
        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=notification_type,
            title=title[:100],
            message=message[:500],
            data=data or {},
            priority=priority,
            related_type=related_type,
            related_id=related_id,
            action_url=action_url,
            expires_at=expires_at or utcnow() + timedelta(days=self.settings.notification_ttl_days),
        )
        self.repo.add(self.db, notification)
        self.logger.debug(f"🔔 Queued {notification_type} notification for user {recipient_id}")
        return notification

    def get_notification(self, notification_id: int, user: User) -> Notification:
        notification = self.repo.get_by_id(self.db, notification_id)
        if not notification:
            raise NotFoundError("Notification")
        if notification.recipient_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only access your own notifications")
        return notification

    def list_notifications(
        self,
        user: User,
        page: int,
        limit: int,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
    ) -> tuple[list[Notification], int, int]:
        now = utcnow()
        items, total = self.repo.list_for_recipient(
            self.db, user.id, now, page, limit, unread_only, notification_type
        )
        unread = self.repo.count_unread(self.db, user.id, now)
        return items, total, unread

    def mark_read(self, notification_id: int, user: User) -> Notification:
        notification = self.get_notification(notification_id, user)
        if notification.recipient_id != user.id:
            raise AuthorizationError("You can only mark your own notifications as read")
        with unit_of_work(self.db):
            notification.mark_as_read()
        return notification

    def mark_all_read(self, user: User) -> int:
        now = utcnow()
        with unit_of_work(self.db):
            unread = self.repo.unread_for_recipient(self.db, user.id, now)
            for notification in unread:
                notification.mark_as_read(now)
        self.logger.info(f"📬 Marked {len(unread)} notifications read for user {user.id}")
        return len(unread)

    def record_delivery(self, notification_id: int, data: DeliveryUpdate) -> Notification:
        notification = self.repo.get_by_id(self.db, notification_id)
        if not notification:
            raise NotFoundError("Notification")
        with unit_of_work(self.db):
            notification.mark_as_sent(data.channel, data.status, data.error_message)
        level = logging.WARNING if data.status == "failed" else logging.INFO
        self.logger.log(level, f"📨 Notification {notification_id} {data.status} via {data.channel}")
        return notification

    def announce(self, sender: User, data: AnnouncementCreate) -> int:
        recipient_ids = data.recipient_ids or self.repo.active_user_ids(self.db)
        with unit_of_work(self.db):
            for recipient_id in recipient_ids:
                self.notify(
                    recipient_id,
                    "system_announcement",
                    data.title,
                    data.message,
                    sender_id=sender.id,
                    data=data.data,
                    priority=data.priority,
                    action_url=data.action_url,
                    expires_at=to_naive_utc(data.expires_at),
                )
        self.logger.info(f"📢 System announcement sent to {len(recipient_ids)} users by {sender.id}")
        return len(recipient_ids)

    def purge_expired(self) -> int:
        removed = self.repo.delete_expired(self.db, utcnow())
        if removed:
            self.logger.info(f"🧹 Purged {removed} expired notifications")
        return removed
