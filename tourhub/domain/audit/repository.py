"""Audit log repository - Database operations for audit entries"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import AuditLog


class AuditLogRepository:
    """Repository for audit log database operations"""

    @staticmethod
    def add(db: Session, entry: AuditLog) -> AuditLog:
        db.add(entry)
        return entry

    @staticmethod
    def list_logs(
        db: Session,
        page: int,
        limit: int,
        user_id: Optional[int] = None,
        action: Optional[str] = None,
        resource: Optional[str] = None,
        category: Optional[str] = None,
        severity: Optional[str] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> tuple[list[AuditLog], int]:
        query = db.query(AuditLog)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        if action:
            query = query.filter(AuditLog.action == action)
        if resource:
            query = query.filter(AuditLog.resource == resource)
        if category:
            query = query.filter(AuditLog.category == category)
        if severity:
            query = query.filter(AuditLog.severity == severity)
        if since:
            query = query.filter(AuditLog.created_at >= since)
        if until:
            query = query.filter(AuditLog.created_at <= until)

        total = query.count()
        items = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total

    @staticmethod
    def delete_older_than(db: Session, cutoff: datetime) -> int:
        return (
            db.query(AuditLog)
            .filter(AuditLog.created_at < cutoff)
            .delete(synchronize_session=False)
        )
