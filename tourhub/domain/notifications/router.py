"""Notification router - FastAPI endpoints for in-app notifications"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_settings, require_admin
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from .schemas import AnnouncementCreate, DeliveryUpdate, NotificationResponse
from .service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def get_notification_service(request: Request, db: Session = Depends(get_db)) -> NotificationService:
    """Dependency injection for NotificationService"""
    return NotificationService(db, get_settings(request), get_logger(request).getChild("notifications"))


@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False, alias="unreadOnly"),
    notification_type: Optional[str] = Query(None, alias="type"),
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    items, total, unread = service.list_notifications(current_user, page, limit, unread_only, notification_type)
    return envelope(
        "Notifications retrieved successfully",
        {
            "notifications": [NotificationResponse.model_validate(n).dump() for n in items],
            "unreadCount": unread,
            "pagination": paginate(page, limit, total, "totalNotifications"),
        },
    )


@router.put("/read-all")
async def mark_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    count = service.mark_all_read(current_user)
    return envelope("All notifications marked as read", {"updated": count})


@router.post("/announcements", status_code=201)
async def send_announcement(
    data: AnnouncementCreate,
    admin: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    count = service.announce(admin, data)
    return envelope("Announcement sent", {"recipients": count})


@router.get("/{notification_id}")
async def get_notification(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = service.get_notification(notification_id, current_user)
    return envelope("Notification retrieved successfully", NotificationResponse.model_validate(notification).dump())


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    notification = service.mark_read(notification_id, current_user)
    return envelope("Notification marked as read", NotificationResponse.model_validate(notification).dump())


@router.post("/{notification_id}/delivery")
async def record_delivery(
    notification_id: int,
    data: DeliveryUpdate,
    _admin: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
):
    notification = service.record_delivery(notification_id, data)
    return envelope("Delivery recorded", NotificationResponse.model_validate(notification).dump())
