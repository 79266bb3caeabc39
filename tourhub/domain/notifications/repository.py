"""Notification repository - Database operations for notifications"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import User
from ...models_notification import Notification


class NotificationRepository:
    """Repository for notification database operations"""

    @staticmethod
    def add(db: Session, notification: Notification) -> Notification:
        db.add(notification)
        return notification

    @staticmethod
    def get_by_id(db: Session, notification_id: int) -> Optional[Notification]:
        return db.query(Notification).filter(Notification.id == notification_id).first()

    @staticmethod
    def _live(db: Session, recipient_id: int, now: datetime):
        return db.query(Notification).filter(
            Notification.recipient_id == recipient_id,
            or_(Notification.expires_at.is_(None), Notification.expires_at >= now),
        )

    @staticmethod
    def list_for_recipient(
        db: Session,
        recipient_id: int,
        now: datetime,
        page: int,
        limit: int,
        unread_only: bool = False,
        notification_type: Optional[str] = None,
    ) -> tuple[list[Notification], int]:
        query = NotificationRepository._live(db, recipient_id, now)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        if notification_type:
            query = query.filter(Notification.type == notification_type)
        total = query.count()
        items = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def count_unread(db: Session, recipient_id: int, now: datetime) -> int:
        return (
            NotificationRepository._live(db, recipient_id, now)
            .filter(Notification.is_read.is_(False))
            .count()
        )

    @staticmethod
    def unread_for_recipient(db: Session, recipient_id: int, now: datetime) -> list[Notification]:
        return (
            NotificationRepository._live(db, recipient_id, now)
            .filter(Notification.is_read.is_(False))
            .all()
        )

    @staticmethod
    def active_user_ids(db: Session) -> list[int]:
        return [row[0] for row in db.query(User.id).filter(User.is_active.is_(True)).all()]

    @staticmethod
    def delete_expired(db: Session, now: datetime) -> int:
        return (
            db.query(Notification)
            .filter(Notification.expires_at.isnot(None), Notification.expires_at < now)
            .delete(synchronize_session=False)
        )
