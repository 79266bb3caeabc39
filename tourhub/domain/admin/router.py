"""Admin router - audit trail and maintenance endpoints"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_logger, get_settings, require_admin
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from ...utils.dates import to_naive_utc
from .schemas import AuditLogResponse, CleanupReport
from .service import AdminService

router = APIRouter(prefix="/admin", tags=["Admin"])


def get_admin_service(request: Request, db: Session = Depends(get_db)) -> AdminService:
    """Dependency injection for AdminService"""
    return AdminService(db, get_settings(request), get_logger(request).getChild("admin"))


@router.get("/audit-logs")
async def list_audit_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user_id: Optional[int] = Query(None, alias="userId"),
    action: Optional[str] = None,
    resource: Optional[str] = None,
    category: Optional[str] = None,
    severity: Optional[str] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    _admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    logs, total = service.list_audit_logs(
        page,
        limit,
        user_id=user_id,
        action=action,
        resource=resource,
        category=category,
        severity=severity,
        since=to_naive_utc(since),
        until=to_naive_utc(until),
    )
    return envelope(
        "Audit logs retrieved successfully",
        {
            "logs": [AuditLogResponse.model_validate(log).dump() for log in logs],
            "pagination": paginate(page, limit, total, "totalLogs"),
        },
    )


@router.post("/maintenance/cleanup")
async def run_cleanup(
    request: Request,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    report = service.run_cleanup(admin, RequestContext.from_request(request))
    return envelope("Maintenance cleanup completed", CleanupReport.model_validate(report).dump())
