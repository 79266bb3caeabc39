"""Booking service - reservation lifecycle and pricing"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import User
from ...models_booking import MODIFICATION_WINDOW_HOURS, Booking, BookingStatus
from ...models_plan import Plan
from ...shared.request_context import RequestContext
from ...utils.dates import hours_until, to_naive_utc, utcnow
from ..audit.service import AuditService
from ..notifications.service import NotificationService
from .repository import BookingRepository
from .schemas import BookingCancel, BookingCreate, BookingStatusUpdate, BookingUpdate, CommunicationCreate, GuestCounts

module_logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 3


class BookingService:
    """Service layer for bookings"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = BookingRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)
        self.notifications = NotificationService(db, settings, self.logger)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _is_business_owner(self, user: User, booking: Booking) -> bool:
        return bool(booking.business and booking.business.owner_id == user.id)

    def get_booking(self, booking_id: int, user: User) -> Booking:
        booking = self.repo.get_by_id(self.db, booking_id)
        if not booking:
            raise NotFoundError("Booking")
        if not (user.is_admin or booking.user_id == user.id or self._is_business_owner(user, booking)):
            raise AuthorizationError("You do not have access to this booking")
        return booking

    def list_bookings(self, user: User, page: int, limit: int, **filters) -> tuple[list[Booking], int]:
        visible_to = None if user.is_admin else user.id
        return self.repo.list_bookings(self.db, page, limit, visible_to=visible_to, **filters)

    # ------------------------------------------------------------------
    # Pricing
    # ------------------------------------------------------------------

    def quote(self, plan: Plan, guests: GuestCounts) -> dict[str, Any]:
        """Price a party for a plan. Infants travel free."""
        price = plan.price or {}
        subtotal = round(float(price.get("amount") or 0) * (guests.adults + guests.children), 2)
        return {
            "subtotal": subtotal,
            "taxes": round(subtotal * self.settings.booking_tax_rate, 2),
            "fees": round(self.settings.booking_service_fee, 2),
            "discounts": 0,
            "currency": price.get("currency") or self.settings.default_currency,
        }

    def _check_plan(self, plan: Plan, date_requested, guests: GuestCounts) -> None:
        if date_requested <= utcnow():
            raise ValidationError.from_fields(
                [{"field": "dateRequested", "message": "Booking date must be in the future"}]
            )
        if plan.is_blackout(date_requested):
            raise ValidationError("The plan is not available on the requested date")
        total = guests.adults + guests.children + guests.infants
        capacity_max = (plan.capacity or {}).get("max")
        if capacity_max is not None and total > capacity_max:
            raise ValidationError(
                f"This plan accepts at most {capacity_max} guests",
                details={"errors": [{"field": "guests", "message": "Guest count exceeds plan capacity"}]},
            )

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_booking(self, user: User, data: BookingCreate, context: RequestContext) -> Booking:
        plan = self.db.query(Plan).filter(Plan.id == data.plan_id).first()
        if not plan or not plan.is_active:
            raise NotFoundError("Plan")
        if not plan.business_id:
            raise ValidationError("This plan is not linked to a business and cannot be booked")

        date_requested = to_naive_utc(data.date_requested)
        self._check_plan(plan, date_requested, data.guests)

        customer = {}
        if data.customer_info:
            customer = data.customer_info.model_dump(by_alias=True, mode="json", exclude_none=True)
        customer.setdefault("name", user.name)
        customer.setdefault("email", user.email)
        if user.phone:
            customer.setdefault("phone", user.phone)
        if data.special_requests:
            customer["specialRequests"] = data.special_requests

        for attempt in range(1, CODE_ATTEMPTS + 1):
            booking = Booking(
                user_id=user.id,
                plan_id=plan.id,
                business_id=plan.business_id,
                date_requested=date_requested,
                time_slot=data.time_slot.model_dump() if data.time_slot else None,
                guests=data.guests.model_dump(),
                special_requests=data.special_requests,
                pricing=self.quote(plan, data.guests),
                customer_info=customer,
                payment_info={"method": data.payment_method} if data.payment_method else None,
                origin={"source": data.source, "userAgent": context.user_agent, "ipAddress": context.ip_address},
            )
            try:
                with unit_of_work(self.db):
                    self.repo.add(self.db, booking)
                    plan.bump_stat("bookings")
                    if plan.business:
                        plan.business.bump_stat("totalBookings")
                    self.db.flush()
                    self.audit.record(
                        "booking_create",
                        "booking",
                        context,
                        user_id=user.id,
                        resource_id=booking.id,
                        status_code=201,
                        details={"confirmationCode": booking.confirmation_code},
                    )
                self.logger.info(f"✅ Booking {booking.confirmation_code} created for user {user.id}")
                return booking
            except ConflictError as e:
                if (e.details or {}).get("field") != "confirmation_code" or attempt == CODE_ATTEMPTS:
                    raise
                self.logger.warning(f"⚠️ Confirmation code collision on attempt {attempt}, regenerating")
        raise ConflictError("Could not generate a unique confirmation code")

    # ------------------------------------------------------------------
    # Changes
    # ------------------------------------------------------------------

    def update_booking(self, user: User, booking_id: int, data: BookingUpdate, context: RequestContext) -> Booking:
        booking = self.get_booking(booking_id, user)
        if booking.user_id != user.id and not user.is_admin:
            raise AuthorizationError("Only the customer can modify this booking")
        if data.version is not None and data.version != booking.version:
            raise ConflictError(
                "Resource was modified by another request, reload and try again",
                code="STALE_WRITE",
                details={"currentVersion": booking.version},
            )
        if not booking.can_be_modified():
            raise ValidationError("Bookings can only be modified more than 48 hours before the requested date")

        updates = data.changes()
        updates.pop("version", None)
        plan = booking.plan
        date_requested = to_naive_utc(data.date_requested) if data.date_requested else booking.date_requested
        if data.date_requested and hours_until(date_requested) <= MODIFICATION_WINDOW_HOURS:
            raise ValidationError(
                f"The new date must be more than {MODIFICATION_WINDOW_HOURS} hours away",
                details={"errors": [{"field": "dateRequested", "message": "Date is too close"}]},
            )
        guests = data.guests or GuestCounts(**booking.guests)
        if "date_requested" in updates or "guests" in updates:
            self._check_plan(plan, date_requested, guests)

        with unit_of_work(self.db):
            if data.date_requested:
                booking.date_requested = date_requested
            if "time_slot" in updates:
                booking.time_slot = data.time_slot.model_dump() if data.time_slot else None
            if data.guests:
                booking.set_guests(guests.adults, guests.children, guests.infants)
                pricing = dict(booking.pricing or {})
                pricing.update(self.quote(plan, guests))
                booking.pricing = pricing
            if "special_requests" in updates:
                booking.special_requests = data.special_requests
                customer = dict(booking.customer_info or {})
                customer["specialRequests"] = data.special_requests
                booking.customer_info = customer
            self.audit.record(
                "booking_update",
                "booking",
                context,
                user_id=user.id,
                resource_id=booking.id,
                changes={"fields": sorted(updates)},
            )
        self.logger.info(f"✏️ Booking {booking.id} updated by {user.id}: {sorted(updates)}")
        return booking

    def cancel_booking(self, user: User, booking_id: int, data: BookingCancel, context: RequestContext) -> Booking:
        booking = self.get_booking(booking_id, user)
        previous = booking.status
        with unit_of_work(self.db):
            booking.cancel(user.id, data.reason)
            self._notify_status(
                booking,
                user,
                "booking_cancelled",
                "Booking cancelled",
                f"Booking {booking.confirmation_code} has been cancelled.",
            )
            if booking.user_id == user.id and booking.business:
                self.notifications.notify(
                    booking.business.owner_id,
                    "booking_cancelled",
                    "Booking cancelled",
                    f"The customer cancelled booking {booking.confirmation_code}.",
                    sender_id=user.id,
                    related=("booking", booking.id),
                )
            self.audit.record(
                "booking_cancel",
                "booking",
                context,
                user_id=user.id,
                resource_id=booking.id,
                changes={"before": {"status": previous}, "after": {"status": booking.status}, "fields": ["status"]},
                details={"reason": data.reason},
            )
        self.logger.info(f"❌ Booking {booking.id} cancelled by {user.id}")
        return booking

    def change_status(
        self, user: User, booking_id: int, data: BookingStatusUpdate, context: RequestContext
    ) -> Booking:
        """Confirm or complete a booking. Restricted to the operating business and admins."""
        booking = self.get_booking(booking_id, user)
        if not (user.is_admin or self._is_business_owner(user, booking)):
            raise AuthorizationError("Only the business or an administrator can update the booking status")

        previous = booking.status
        with unit_of_work(self.db):
            booking.transition_to(data.status, user.id, data.notes)
            if data.status == BookingStatus.CONFIRMED.value:
                self._notify_status(
                    booking,
                    user,
                    "booking_confirmed",
                    "Booking confirmed",
                    f"Your booking {booking.confirmation_code} is confirmed.",
                )
            elif data.status == BookingStatus.COMPLETED.value and booking.business:
                booking.business.bump_stat("totalRevenue", (booking.pricing or {}).get("total") or 0)
            self.audit.record(
                f"booking_{'confirm' if data.status == 'confirmed' else 'complete'}",
                "booking",
                context,
                user_id=user.id,
                resource_id=booking.id,
                changes={"before": {"status": previous}, "after": {"status": data.status}, "fields": ["status"]},
            )
        self.logger.info(f"📋 Booking {booking.id} {previous} -> {data.status} by {user.id}")
        return booking

    def add_communication(self, user: User, booking_id: int, data: CommunicationCreate) -> Booking:
        booking = self.get_booking(booking_id, user)
        with unit_of_work(self.db):
            booking.add_communication(data.type, data.message, user.id)
        return booking

    def _notify_status(self, booking: Booking, actor: User, kind: str, title: str, message: str) -> None:
        if booking.user_id == actor.id:
            return
        self.notifications.notify(
            booking.user_id,
            kind,
            title,
            message,
            sender_id=actor.id,
            priority="high",
            data={"confirmationCode": booking.confirmation_code},
            related=("booking", booking.id),
            action_url=f"/bookings/{booking.id}",
        )
