from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
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
from .models import EntityMixin, FieldErrors
from .utils.dates import utcnow

RATING_DIMENSIONS = ("value", "service", "cleanliness", "location", "communication")
MODERATION_STATUSES = ("pending", "approved", "rejected", "flagged")
REPORT_REASONS = (
    "inappropriate_content",
    "spam",
    "fake_review",
    "offensive_language",
    "irrelevant",
    "other",
)
REVIEW_SOURCES = ("web", "mobile", "admin")
EDIT_WINDOW_HOURS = 24
FLAG_THRESHOLD = 3


def overall_rating(rating: dict[str, Any]) -> float:
    """Mean of the five sub-ratings, rounded half-up to one decimal."""
    values = [Decimal(str(rating[dimension])) for dimension in RATING_DIMENSIONS]
    mean = sum(values) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class Review(EntityMixin, Base):
    __tablename__ = "reviews"
    __entity_name__ = "Review"

    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=False, index=True)
    rating = Column(JSON, nullable=False)
    comment = Column(Text, nullable=False)
    photos = Column(JSON, nullable=False)
    pros = Column(JSON, nullable=False)
    cons = Column(JSON, nullable=False)
    would_recommend = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    helpful_votes = Column(JSON, nullable=False)
    reported_by = Column(JSON, nullable=False)
    moderation_status = Column(String(20), default="approved", nullable=False, index=True)
    moderated_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    moderated_at = Column(DateTime, nullable=True)
    moderation_notes = Column(Text, nullable=True)
    business_response = Column(JSON, nullable=True)
    origin = Column(JSON, nullable=False)

    user = relationship("User", foreign_keys=[user_id])
    plan = relationship("Plan")
    booking = relationship("Booking")

    def __init__(self, **kwargs):
        kwargs.setdefault("photos", [])
        kwargs.setdefault("pros", [])
        kwargs.setdefault("cons", [])
        kwargs.setdefault("would_recommend", True)
        kwargs.setdefault("is_verified", False)
        kwargs.setdefault("is_anonymous", False)
        kwargs.setdefault("helpful_votes", [])
        kwargs.setdefault("reported_by", [])
        kwargs.setdefault("moderation_status", "approved")
        kwargs.setdefault("origin", {"source": "web"})
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def apply_derived(self, is_new: bool) -> None:
        rating = dict(self.rating or {})
        if all(isinstance(rating.get(d), (int, float)) for d in RATING_DIMENSIONS):
            rating["overall"] = overall_rating(rating)
            self.rating = rating

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        errors.require("plan", self.plan_id, "Plan")
        errors.require("user", self.user_id, "User")
        errors.require("booking", self.booking_id, "Booking")
        errors.require("business", self.business_id, "Business")

        rating = self.rating or {}
        for dimension in RATING_DIMENSIONS:
            if errors.require(f"rating.{dimension}", rating.get(dimension), f"{dimension.capitalize()} rating"):
                errors.number(f"rating.{dimension}", rating.get(dimension), 1, 5, f"{dimension.capitalize()} rating")

        if errors.require("comment", self.comment, "Review comment"):
            errors.length("comment", self.comment, 10, 1000, "Comment")
        for index, photo in enumerate(self.photos or []):
            errors.url(f"photos.{index}", photo)
        for field_name, items in (("pros", self.pros), ("cons", self.cons)):
            for item in items or []:
                errors.length(field_name, item, max_len=100, label=field_name.capitalize())

        errors.one_of("moderationStatus", self.moderation_status, MODERATION_STATUSES, "Moderation status")
        for report in self.reported_by or []:
            errors.one_of("reportedBy.reason", report.get("reason"), REPORT_REASONS, "Report reason")
        if self.business_response:
            errors.length(
                "businessResponse.message",
                self.business_response.get("message"),
                1,
                500,
                "Business response",
            )
        errors.one_of("metadata.source", (self.origin or {}).get("source"), REVIEW_SOURCES, "Source")

    # --- helpful votes ---------------------------------------------------

    def is_helpful(self, user_id: int) -> bool:
        return any(vote.get("user") == user_id for vote in self.helpful_votes or [])

    def add_helpful_vote(self, user_id: int, now: Optional[datetime] = None) -> bool:
        if self.is_helpful(user_id):
            return False
        vote = {"user": user_id, "votedAt": (now or utcnow()).isoformat()}
        self.helpful_votes = [*(self.helpful_votes or []), vote]
        return True

    def remove_helpful_vote(self, user_id: int) -> bool:
        if not self.is_helpful(user_id):
            return False
        self.helpful_votes = [vote for vote in self.helpful_votes if vote.get("user") != user_id]
        return True

    @property
    def helpful_votes_count(self) -> int:
        return len(self.helpful_votes or [])

    # --- permissions -----------------------------------------------------

    def can_be_edited(self, user_id: int, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        age_hours = (now - self.created_at).total_seconds() / 3600
        return self.user_id == user_id and age_hours <= EDIT_WINDOW_HOURS and self.moderation_status == "approved"

    def can_be_deleted(self, user_id: int) -> bool:
        return self.user_id == user_id

    # --- reports / moderation -------------------------------------------

    def has_reported(self, user_id: int) -> bool:
        return any(report.get("user") == user_id for report in self.reported_by or [])

    def add_report(self, user_id: int, reason: str, now: Optional[datetime] = None) -> bool:
        if self.has_reported(user_id):
            return False
        report = {"user": user_id, "reason": reason, "reportedAt": (now or utcnow()).isoformat()}
        self.reported_by = [*(self.reported_by or []), report]
        if len(self.reported_by) >= FLAG_THRESHOLD and self.moderation_status == "approved":
            self.moderation_status = "flagged"
        return True

    def moderate(self, status: str, moderator_id: int, notes: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self.moderation_status = status
        self.moderated_by = moderator_id
        self.moderated_at = now or utcnow()
        self.moderation_notes = notes

    def respond(self, message: str, responder_id: int, now: Optional[datetime] = None) -> None:
        self.business_response = {
            "message": message,
            "respondedAt": (now or utcnow()).isoformat(),
            "respondedBy": responder_id,
        }
