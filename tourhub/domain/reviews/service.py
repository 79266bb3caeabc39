"""Review service - verified reviews, votes, reports and moderation"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import User
from ...models_booking import Booking, BookingStatus
from ...models_plan import Business, Plan
from ...models_review import Review
from ...shared.request_context import RequestContext
from ..audit.service import AuditService
from ..notifications.service import NotificationService
from .repository import ReviewRepository
from .schemas import BusinessReplyCreate, ModerationUpdate, ReportCreate, ReviewCreate, ReviewUpdate

module_logger = logging.getLogger(__name__)


def average(values: list[float]) -> float:
    if not values:
        return 0
    mean = sum(Decimal(str(v)) for v in values) / Decimal(len(values))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class ReviewService:
    """Service layer for reviews"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = ReviewRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)
        self.notifications = NotificationService(db, settings, self.logger)

    def get_review(self, review_id: int) -> Review:
        review = self.repo.get_by_id(self.db, review_id)
        if not review:
            raise NotFoundError("Review")
        return review

    def list_for_plan(self, plan_id: int, page: int, limit: int, **filters) -> tuple[list[Review], int]:
        return self.repo.list_for_plan(self.db, plan_id, page, limit, **filters)

    def list_by_status(self, status: str, page: int, limit: int) -> tuple[list[Review], int]:
        return self.repo.list_by_status(self.db, status, page, limit)

    def refresh_ratings(self, plan_id: int, business_id: int) -> None:
        """Recompute plan and business rating aggregates from approved reviews (caller commits)"""
        self.db.flush()
        plan = self.db.query(Plan).filter(Plan.id == plan_id).first()
        if plan:
            ratings = self.repo.approved_overall_ratings(self.db, plan_id=plan_id)
            plan.set_rating(average(ratings), len(ratings))
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if business:
            ratings = self.repo.approved_overall_ratings(self.db, business_id=business_id)
            business.set_rating(average(ratings), len(ratings))

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def create_review(self, user: User, data: ReviewCreate, context: RequestContext) -> Review:
        booking = self.db.query(Booking).filter(Booking.id == data.booking_id).first()
        if not booking:
            raise NotFoundError("Booking")
        if self.repo.get_by_booking(self.db, booking.id):
            raise ConflictError("A review already exists for this booking", details={"field": "booking"})
        if booking.user_id != user.id:
            raise AuthorizationError("You can only review your own bookings")
        if booking.status != BookingStatus.COMPLETED.value:
            raise ValidationError("Only completed bookings can be reviewed")

        review = Review(
            plan_id=booking.plan_id,
            user_id=user.id,
            booking_id=booking.id,
            business_id=booking.business_id,
            rating=data.rating.scores(),
            comment=data.comment,
            photos=data.photos,
            pros=data.pros,
            cons=data.cons,
            would_recommend=data.would_recommend,
            is_anonymous=data.is_anonymous,
            is_verified=True,
            origin={"source": data.source, "userAgent": context.user_agent, "ipAddress": context.ip_address},
        )
        with unit_of_work(self.db):
            self.repo.add(self.db, review)
            self.refresh_ratings(review.plan_id, review.business_id)
            business = booking.business
            if business:
                self.notifications.notify(
                    business.owner_id,
                    "review_received",
                    "New review",
                    f"Your plan received a {review.rating['overall']} star review.",
                    sender_id=None if review.is_anonymous else user.id,
                    related=("review", review.id),
                    action_url=f"/plans/{review.plan_id}",
                )
            self.audit.record(
                "review_create", "review", context, user_id=user.id, resource_id=review.id, status_code=201
            )
        self.logger.info(f"⭐ Review {review.id} created for plan {review.plan_id} ({review.rating['overall']})")
        return review

    def update_review(self, user: User, review_id: int, data: ReviewUpdate) -> Review:
        review = self.get_review(review_id)
        if not review.can_be_edited(user.id):
            raise AuthorizationError("This review can no longer be edited")

        updates = data.changes()
        with unit_of_work(self.db):
            for key in updates:
                value = getattr(data, key)
                if key == "rating":
                    if value is not None:
                        review.rating = value.scores()
                elif value is not None:
                    setattr(review, key, value)
            if "rating" in updates:
                self.refresh_ratings(review.plan_id, review.business_id)
        return review

    def delete_review(self, user: User, review_id: int, context: RequestContext) -> None:
        review = self.get_review(review_id)
        if not review.can_be_deleted(user.id):
            raise AuthorizationError("You can only delete your own reviews")
        plan_id, business_id = review.plan_id, review.business_id
        with unit_of_work(self.db):
            self.repo.delete(self.db, review)
            self.refresh_ratings(plan_id, business_id)
            self.audit.record("review_delete", "review", context, user_id=user.id, resource_id=review_id)
        self.logger.info(f"🗑️ Review {review_id} deleted by {user.id}")

    # ------------------------------------------------------------------
    # Community
    # ------------------------------------------------------------------

    def vote_helpful(self, user: User, review_id: int, helpful: bool = True) -> Review:
        review = self.get_review(review_id)
        with unit_of_work(self.db):
            if helpful:
                review.add_helpful_vote(user.id)
            else:
                review.remove_helpful_vote(user.id)
        return review

    def report_review(self, user: User, review_id: int, data: ReportCreate) -> Review:
        review = self.get_review(review_id)
        if review.user_id == user.id:
            raise ValidationError("You cannot report your own review")
        if review.has_reported(user.id):
            raise ConflictError("You have already reported this review")
        was_approved = review.moderation_status == "approved"
        with unit_of_work(self.db):
            review.add_report(user.id, data.reason)
            if was_approved and review.moderation_status == "flagged":
                self.refresh_ratings(review.plan_id, review.business_id)
        if review.moderation_status == "flagged":
            self.logger.warning(f"🚩 Review {review.id} flagged after {len(review.reported_by)} reports")
        return review

    def moderate_review(
        self, admin: User, review_id: int, data: ModerationUpdate, context: RequestContext
    ) -> Review:
        review = self.get_review(review_id)
        previous = review.moderation_status
        with unit_of_work(self.db):
            review.moderate(data.status, admin.id, data.notes)
            self.refresh_ratings(review.plan_id, review.business_id)
            self.audit.record(
                "review_moderate",
                "review",
                context,
                user_id=admin.id,
                resource_id=review.id,
                changes={
                    "before": {"moderationStatus": previous},
                    "after": {"moderationStatus": data.status},
                    "fields": ["moderationStatus"],
                },
            )
        self.logger.info(f"🛡️ Review {review.id} moderated {previous} -> {data.status} by {admin.id}")
        return review

    def respond(self, user: User, review_id: int, data: BusinessReplyCreate) -> Review:
        review = self.get_review(review_id)
        business = self.db.query(Business).filter(Business.id == review.business_id).first()
        if not business or (business.owner_id != user.id and not user.is_admin):
            raise AuthorizationError("Only the business owner can respond to this review")
        with unit_of_work(self.db):
            review.respond(data.message, user.id)
        return review
