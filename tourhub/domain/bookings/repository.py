"""Booking repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_booking import Booking
from ...models_plan import Business


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_by_id(db: Session, booking_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.id == booking_id).first()

    @staticmethod
    def get_by_code(db: Session, confirmation_code: str) -> Optional[Booking]:
        return db.query(Booking).filter(Booking.confirmation_code == confirmation_code.upper()).first()

    @staticmethod
    def add(db: Session, booking: Booking) -> Booking:
        db.add(booking)
        return booking

    @staticmethod
    def list_bookings(
        db: Session,
        page: int,
        limit: int,
        visible_to: Optional[int] = None,
        user_id: Optional[int] = None,
        business_id: Optional[int] = None,
        plan_id: Optional[int] = None,
        status: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> tuple[list[Booking], int]:
        """List bookings. `visible_to` limits rows to the user's own and their businesses' bookings."""
        query = db.query(Booking)
        if visible_to is not None:
            owned = db.query(Business.id).filter(Business.owner_id == visible_to)
            query = query.filter(or_(Booking.user_id == visible_to, Booking.business_id.in_(owned)))
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)
        if business_id is not None:
            query = query.filter(Booking.business_id == business_id)
        if plan_id is not None:
            query = query.filter(Booking.plan_id == plan_id)
        if status:
            query = query.filter(Booking.status == status)
        if date_from is not None:
            query = query.filter(Booking.date_requested >= date_from)
        if date_to is not None:
            query = query.filter(Booking.date_requested <= date_to)

        total = query.count()
        bookings = (
            query.order_by(Booking.date_requested.desc(), Booking.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return bookings, total
