"""Admin domain schemas"""

from datetime import datetime
from typing import Any, Optional

from ...schemas import APIModel


class AuditLogResponse(APIModel):
    id: int
    user_id: Optional[int] = None
    action: str
    resource: str
    resource_id: Optional[str] = None
    method: str
    endpoint: str
    status_code: int
    user_agent: Optional[str] = None
    ip_address: str
    changes: Optional[dict[str, Any]] = None
    details: dict[str, Any]
    severity: str
    category: str
    created_at: datetime


class CleanupReport(APIModel):
    audit_logs: int
    sessions: int
    notifications: int
