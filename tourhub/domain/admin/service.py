"""Admin service - audit trail queries and periodic maintenance"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...models import AuditLog, User
from ...shared.request_context import RequestContext
from ..audit.service import AuditService
from ..auth.service import AuthService
from ..notifications.service import NotificationService

module_logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)

    def list_audit_logs(self, page: int, limit: int, **filters) -> tuple[list[AuditLog], int]:
        return self.audit.list_logs(page, limit, **filters)

    def run_cleanup(self, admin: User, context: RequestContext) -> dict[str, int]:
        """Purge expired audit entries, stale sessions and expired notifications in one transaction"""
        self.logger.info(f"🧹 Maintenance cleanup started by admin {admin.id}")
        with unit_of_work(self.db):
            report = {
                "audit_logs": self.audit.purge_expired(self.settings.audit_log_retention_days),
                "sessions": AuthService(self.db, self.settings, self.logger).purge_stale_sessions(),
                "notifications": NotificationService(self.db, self.settings, self.logger).purge_expired(),
            }
            self.audit.record(
                "maintenance_cleanup",
                "system",
                context,
                user_id=admin.id,
                details=report,
                category="system",
            )
        self.logger.info(f"✅ Maintenance cleanup finished: {report}")
        return report
