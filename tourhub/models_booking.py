import enum
import secrets
import string
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.orm import relationship

from .database import Base
from .errors import ValidationError
from .models import CURRENCIES, EntityMixin, FieldErrors
from .shared.validators import is_valid_email, is_valid_phone, is_valid_time
from .utils.dates import hours_until, utcnow

CONFIRMATION_PREFIX = "TOL"
CANCELLATION_WINDOW_HOURS = 24
MODIFICATION_WINDOW_HOURS = 48

PAYMENT_METHODS = ("credit_card", "debit_card", "cash", "transfer", "paypal", "mercadopago")
COMMUNICATION_TYPES = ("email", "sms", "whatsapp", "system")
BOOKING_SOURCES = ("web", "mobile", "admin", "api")

_BASE36_UPPER = string.digits + string.ascii_uppercase


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

ALLOWED_TRANSITIONS: dict[str, tuple[str, ...]] = {
    BookingStatus.PENDING.value: (BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value),
    BookingStatus.CONFIRMED.value: (BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value),
    BookingStatus.COMPLETED.value: (),
    BookingStatus.CANCELLED.value: (),
}


def to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_UPPER[remainder])
    return "".join(reversed(digits))


def generate_confirmation_code(now: Optional[datetime] = None) -> str:
    """TOL + base-36 millisecond timestamp + 4 random base-36 characters."""
    millis = int((now or utcnow()).timestamp() * 1000)
    suffix = "".join(secrets.choice(_BASE36_UPPER) for _ in range(4))
    return f"{CONFIRMATION_PREFIX}{to_base36(millis)}{suffix}"


class Booking(EntityMixin, Base):
    __tablename__ = "bookings"
    __entity_name__ = "Booking"

    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    date_requested = Column(DateTime, nullable=False, index=True)
    time_slot = Column(JSON, nullable=True)
    guests = Column(JSON, nullable=False)
    total_guests = Column(Integer, nullable=False)
    special_requests = Column(Text, nullable=True)
    pricing = Column(JSON, nullable=False)
    status = Column(String(20), default=BookingStatus.PENDING.value, nullable=False, index=True)
    status_history = Column(JSON, nullable=False)
    confirmation_code = Column(String(32), unique=True, index=True, nullable=False)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    payment_info = Column(JSON, nullable=True)
    customer_info = Column(JSON, nullable=False)
    communications = Column(JSON, nullable=False)
    origin = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    plan = relationship("Plan")
    business = relationship("Business")

    __mapper_args__ = {"version_id_col": version}

    def __init__(self, **kwargs):
        kwargs.setdefault("status", BookingStatus.PENDING.value)
        kwargs.setdefault("status_history", [])
        kwargs.setdefault("guests", {"adults": 1, "children": 0, "infants": 0})
        kwargs.setdefault(
            "pricing", {"subtotal": 0, "taxes": 0, "fees": 0, "discounts": 0, "total": 0, "currency": "COP"}
        )
        kwargs.setdefault("customer_info", {})
        kwargs.setdefault("communications", [])
        kwargs.setdefault("origin", {"source": "web"})
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)
        self._recount_guests()

    # --- derived fields --------------------------------------------------

    def _recount_guests(self) -> None:
        guests = self.guests or {}
        self.total_guests = sum(int(guests.get(k) or 0) for k in ("adults", "children", "infants"))

    def set_guests(self, adults: int, children: int = 0, infants: int = 0) -> int:
        self.guests = {"adults": adults, "children": children, "infants": infants}
        self._recount_guests()
        return self.total_guests

    def calculate_total(self) -> float:
        pricing = self.pricing or {}
        total = (
            (pricing.get("subtotal") or 0)
            + (pricing.get("taxes") or 0)
            + (pricing.get("fees") or 0)
            - (pricing.get("discounts") or 0)
        )
        return round(total, 2)

    def apply_derived(self, is_new: bool) -> None:
        self._recount_guests()
        pricing = dict(self.pricing or {})
        pricing["total"] = self.calculate_total()
        pricing.setdefault("currency", "COP")
        self.pricing = pricing
        if not self.confirmation_code:
            self.confirmation_code = generate_confirmation_code()
        if is_new and not self.status_history:
            self._append_history(self.status, self.user_id, None, self.created_at or utcnow())

    # --- status machine --------------------------------------------------

    def _append_history(self, status: str, actor_id: Optional[int], notes: Optional[str], now: datetime) -> None:
        entry = {"status": status, "updatedAt": now.isoformat(), "updatedBy": actor_id, "notes": notes}
        self.status_history = [*(self.status_history or []), entry]

    def can_transition_to(self, new_status: str) -> bool:
        return new_status in ALLOWED_TRANSITIONS.get(self.status, ())

    def transition_to(
        self,
        new_status: str,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        if not self.can_transition_to(new_status):
            raise ValidationError(
                f"Cannot change booking status from {self.status} to {new_status}",
                details={"from": self.status, "to": new_status},
            )
        now = now or utcnow()
        self.status = new_status
        if new_status == BookingStatus.CONFIRMED.value:
            self.confirmed_at = now
        elif new_status == BookingStatus.COMPLETED.value:
            self.completed_at = now
        elif new_status == BookingStatus.CANCELLED.value:
            self.cancelled_at = now
            self.cancelled_by = actor_id
        self._append_history(new_status, actor_id, notes, now)

    def cancel(self, actor_id: int, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        if not self.can_be_cancelled(now):
            if self.status not in ACTIVE_STATUSES:
                raise ValidationError(f"A {self.status} booking cannot be cancelled")
            raise ValidationError(
                f"Bookings can only be cancelled more than {CANCELLATION_WINDOW_HOURS} hours before the requested date"
            )
        self.cancellation_reason = reason
        self.transition_to(BookingStatus.CANCELLED.value, actor_id, reason, now)

    def can_be_cancelled(self, now: Optional[datetime] = None) -> bool:
        return self.status in ACTIVE_STATUSES and hours_until(self.date_requested, now) > CANCELLATION_WINDOW_HOURS

    def can_be_modified(self, now: Optional[datetime] = None) -> bool:
        return self.status in ACTIVE_STATUSES and hours_until(self.date_requested, now) > MODIFICATION_WINDOW_HOURS

    def add_communication(
        self, kind: str, message: str, sent_by: int, now: Optional[datetime] = None
    ) -> dict[str, Any]:
        entry = {"type": kind, "message": message, "sentAt": (now or utcnow()).isoformat(), "sentBy": sent_by}
        self.communications = [*(self.communications or []), entry]
        return entry

    # --- validation ------------------------------------------------------

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        errors.require("user", self.user_id, "User")
        errors.require("plan", self.plan_id, "Plan")
        errors.require("business", self.business_id, "Business")

        if errors.require("dateRequested", self.date_requested, "Booking date") and is_new:
            errors.check(self.date_requested > utcnow(), "dateRequested", "Booking date must be in the future")
        if self.time_slot:
            for edge in ("start", "end"):
                errors.check(
                    is_valid_time(self.time_slot.get(edge)), f"timeSlot.{edge}", "Time must be in HH:MM format"
                )

        guests = self.guests or {}
        errors.number("guests.adults", guests.get("adults"), 1, label="Adults")
        errors.number("guests.children", guests.get("children") or 0, 0, label="Children")
        errors.number("guests.infants", guests.get("infants") or 0, 0, label="Infants")
        errors.check((self.total_guests or 0) >= 1, "totalGuests", "At least one guest is required")
        errors.length("specialRequests", self.special_requests, max_len=500, label="Special requests")

        pricing = self.pricing or {}
        for key in ("subtotal", "taxes", "fees", "discounts", "total"):
            errors.number(f"pricing.{key}", pricing.get(key), 0, label=key.capitalize())
        errors.one_of("pricing.currency", pricing.get("currency"), CURRENCIES, "Currency")

        errors.one_of("status", self.status, ALLOWED_TRANSITIONS.keys(), "Status")
        history = self.status_history or []
        errors.check(
            bool(history) and history[-1].get("status") == self.status,
            "statusHistory",
            "Every status change must be recorded in the status history",
        )
        errors.length("cancellationReason", self.cancellation_reason, max_len=500, label="Cancellation reason")

        if not is_new:
            state = inspect(self)
            code_history = state.attrs.confirmation_code.history
            if code_history.deleted and code_history.deleted[0]:
                errors.add("confirmationCode", "Confirmation code cannot be changed")
            history_change = state.attrs.status_history.history
            if history_change.deleted:
                previous = history_change.deleted[0] or []
                errors.check(
                    history[: len(previous)] == previous,
                    "statusHistory",
                    "Status history is append-only",
                )

        payment = self.payment_info or {}
        errors.one_of("paymentInfo.method", payment.get("method"), PAYMENT_METHODS, "Payment method")
        errors.number("paymentInfo.refundAmount", payment.get("refundAmount"), 0, label="Refund amount")

        customer = self.customer_info or {}
        if errors.require("customerInfo.name", customer.get("name"), "Customer name"):
            errors.length("customerInfo.name", customer.get("name"), max_len=100, label="Customer name")
        if errors.require("customerInfo.email", customer.get("email"), "Customer email"):
            errors.check(is_valid_email(customer.get("email")), "customerInfo.email", "Please enter a valid email")
        if customer.get("phone"):
            errors.check(is_valid_phone(customer["phone"]), "customerInfo.phone", "Please enter a valid phone number")
        emergency = customer.get("emergencyContact") or {}
        if emergency.get("phone"):
            errors.check(
                is_valid_phone(emergency["phone"]),
                "customerInfo.emergencyContact.phone",
                "Please enter a valid phone number",
            )

        for entry in self.communications or []:
            errors.one_of("communications.type", entry.get("type"), COMMUNICATION_TYPES, "Communication type")
        errors.one_of("metadata.source", (self.origin or {}).get("source"), BOOKING_SOURCES, "Source")
