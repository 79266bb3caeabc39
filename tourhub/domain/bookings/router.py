"""Booking router - FastAPI endpoints for reservations"""

from datetime import datetime
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_settings
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from ...utils.dates import to_naive_utc
from .schemas import (
    BookingCancel,
    BookingCreate,
    BookingResponse,
    BookingStatusUpdate,
    BookingUpdate,
    CommunicationCreate,
)
from .service import BookingService

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(request: Request, db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db, get_settings(request), get_logger(request).getChild("bookings"))


@router.get("")
async def list_bookings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[Literal["pending", "confirmed", "cancelled", "completed"]] = None,
    plan_id: Optional[int] = Query(None, alias="planId"),
    business_id: Optional[int] = Query(None, alias="businessId"),
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    bookings, total = service.list_bookings(
        current_user,
        page,
        limit,
        status=status,
        plan_id=plan_id,
        business_id=business_id,
        date_from=to_naive_utc(date_from),
        date_to=to_naive_utc(date_to),
    )
    return envelope(
        "Bookings retrieved successfully",
        {
            "bookings": [BookingResponse.model_validate(b).dump() for b in bookings],
            "pagination": paginate(page, limit, total, "totalBookings"),
        },
    )


@router.post("", status_code=201)
async def create_booking(
    data: BookingCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.create_booking(current_user, data, RequestContext.from_request(request))
    return envelope("Booking created successfully", BookingResponse.model_validate(booking).dump())


@router.get("/{booking_id}")
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.get_booking(booking_id, current_user)
    return envelope("Booking retrieved successfully", BookingResponse.model_validate(booking).dump())


@router.put("/{booking_id}")
async def update_booking(
    booking_id: int,
    data: BookingUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.update_booking(current_user, booking_id, data, RequestContext.from_request(request))
    return envelope("Booking updated successfully", BookingResponse.model_validate(booking).dump())


@router.put("/{booking_id}/cancel")
async def cancel_booking(
    booking_id: int,
    request: Request,
    data: Optional[BookingCancel] = None,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.cancel_booking(
        current_user, booking_id, data or BookingCancel(), RequestContext.from_request(request)
    )
    return envelope("Booking cancelled successfully", BookingResponse.model_validate(booking).dump())


@router.put("/{booking_id}/status")
async def change_status(
    booking_id: int,
    data: BookingStatusUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.change_status(current_user, booking_id, data, RequestContext.from_request(request))
    return envelope(f"Booking {booking.status}", BookingResponse.model_validate(booking).dump())


@router.post("/{booking_id}/communications", status_code=201)
async def add_communication(
    booking_id: int,
    data: CommunicationCreate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    booking = service.add_communication(current_user, booking_id, data)
    return envelope("Message recorded", {"communications": booking.communications})
