from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .errors import ValidationError
from .models import EntityMixin, FieldErrors
from .utils.dates import utcnow

NOTIFICATION_TYPES = (
    "booking_confirmed",
    "booking_cancelled",
    "plan_updated",
    "review_received",
    "business_verified",
    "system_announcement",
)
PRIORITIES = ("low", "medium", "high", "urgent")
CHANNELS = ("push", "email", "sms")
DELIVERY_STATUSES = ("pending", "delivered", "failed")
RELATED_ENTITY_TYPES = ("plan", "booking", "business", "review", "user")


def empty_channels() -> dict[str, dict[str, Any]]:
    return {
        channel: {"sent": False, "sentAt": None, "deliveryStatus": "pending", "errorMessage": None}
        for channel in CHANNELS
    }


class Notification(EntityMixin, Base):
    __tablename__ = "notifications"
    __entity_name__ = "Notification"

    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(40), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=False)
    channels = Column(JSON, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False, index=True)
    read_at = Column(DateTime, nullable=True)
    priority = Column(String(10), default="medium", nullable=False)
    expires_at = Column(DateTime, nullable=True, index=True)
    action_url = Column(String(500), nullable=True)
    category = Column(String(50), nullable=False)
    related_type = Column(String(20), nullable=True)
    related_id = Column(Integer, nullable=True)

    recipient = relationship("User", foreign_keys=[recipient_id])

    def __init__(self, **kwargs):
        kwargs.setdefault("data", {})
        kwargs.setdefault("channels", empty_channels())
        kwargs.setdefault("is_read", False)
        kwargs.setdefault("priority", "medium")
        kwargs.setdefault("category", (kwargs.get("type") or "general").split("_")[0])
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    @property
    def related_entity(self) -> Optional[dict[str, Any]]:
        if not self.related_type:
            return None
        return {"type": self.related_type, "id": self.related_id}

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        errors.require("recipient", self.recipient_id, "Recipient")
        if errors.require("type", self.type, "Notification type"):
            errors.one_of("type", self.type, NOTIFICATION_TYPES, "Notification type")
        if errors.require("title", self.title, "Notification title"):
            errors.length("title", self.title, max_len=100, label="Title")
        if errors.require("message", self.message, "Notification message"):
            errors.length("message", self.message, max_len=500, label="Message")
        errors.one_of("priority", self.priority, PRIORITIES, "Priority")
        errors.require("category", self.category, "Notification category")
        if is_new and self.expires_at is not None:
            errors.check(self.expires_at > utcnow(), "expiresAt", "Expiration date must be in the future")
        errors.one_of("relatedEntity.type", self.related_type, RELATED_ENTITY_TYPES, "Related entity type")
        if self.action_url and not self.action_url.startswith("/"):
            errors.url("actionUrl", self.action_url)
        for channel, state in (self.channels or {}).items():
            errors.one_of("channels", channel, CHANNELS, "Channel")
            errors.one_of(
                f"channels.{channel}.deliveryStatus", state.get("deliveryStatus"), DELIVERY_STATUSES, "Delivery status"
            )

    def mark_as_read(self, now: Optional[datetime] = None) -> None:
        if not self.is_read:
            self.is_read = True
            self.read_at = now or utcnow()

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or utcnow())

    def should_be_sent(self, channel: str, now: Optional[datetime] = None) -> bool:
        state = (self.channels or {}).get(channel) or {}
        return not state.get("sent") and not self.is_expired(now)

    def mark_as_sent(
        self,
        channel: str,
        status: str,
        error_message: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Record a delivery attempt for one channel."""
        if channel not in CHANNELS:
            raise ValidationError(f"Unknown channel: {channel}")
        if status not in ("delivered", "failed"):
            raise ValidationError("Delivery status must be delivered or failed")
        if self.is_expired(now):
            raise ValidationError("Notification has expired and can no longer be delivered")
        if not self.should_be_sent(channel, now):
            raise ValidationError(f"Notification already sent via {channel}")
        channels = {name: dict(state) for name, state in (self.channels or empty_channels()).items()}
        channels[channel] = {
            "sent": True,
            "sentAt": (now or utcnow()).isoformat(),
            "deliveryStatus": status,
            "errorMessage": error_message,
        }
        self.channels = channels

    @property
    def delivery_summary(self) -> dict[str, int]:
        summary = {"total": 0, "delivered": 0, "failed": 0, "pending": 0}
        for channel in CHANNELS:
            state = (self.channels or {}).get(channel) or {}
            if not state.get("sent"):
                continue
            summary["total"] += 1
            status = state.get("deliveryStatus")
            if status in ("delivered", "failed"):
                summary[status] += 1
            else:
                summary["pending"] += 1
        return summary
