"""Audit service - records and queries the immutable audit trail"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...models import AuditLog
from ...shared.request_context import SYSTEM_CONTEXT, RequestContext
from ...utils.dates import utcnow
from .repository import AuditLogRepository

module_logger = logging.getLogger(__name__)


class AuditService:
    """Writes audit entries into the caller's unit of work (no commit here)"""

    def __init__(self, db: Session, logger: Optional[logging.Logger] = None):
        self.db = db
        self.repo = AuditLogRepository()
        self.logger = logger or module_logger

    def record(
        self,
        action: str,
        resource: str,
        context: Optional[RequestContext] = None,
        user_id: Optional[int] = None,
        resource_id: Optional[Any] = None,
        status_code: int = 200,
        changes: Optional[dict[str, Any]] = None,
        details: Optional[dict[str, Any]] = None,
        severity: str = "info",
        category: Optional[str] = None,
    ) -> AuditLog:
        context = context or SYSTEM_CONTEXT
        entry = AuditLog(
            user_id=user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            method=context.method,
            endpoint=context.endpoint,
            status_code=status_code,
            user_agent=(context.user_agent or "")[:500] or None,
            ip_address=context.ip_address,
            changes=changes,
            details=details or {},
            severity=severity,
            category=category,
        )
        self.repo.add(self.db, entry)
        if entry.is_sensitive:
            self.logger.info(f"🔐 AUDIT {entry.formatted()}")
        return entry

    def record_system(self, action: str, resource: str, severity: str = "info", **details) -> AuditLog:
        return self.record(action, resource, severity=severity, details=details, category="system")

    def list_logs(self, page: int = 1, limit: int = 50, **filters) -> tuple[list[AuditLog], int]:
        return self.repo.list_logs(self.db, page, limit, **filters)

    def purge_expired(self, retention_days: int) -> int:
        cutoff = utcnow() - timedelta(days=retention_days)
        removed = self.repo.delete_older_than(self.db, cutoff)
        if removed:
            self.logger.info(f"🧹 Purged {removed} audit log entries older than {retention_days} days")
        return removed
