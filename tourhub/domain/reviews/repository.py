"""Review repository - Database operations for reviews"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_review import Review

SORTABLE_FIELDS = {
    "createdAt": Review.created_at,
    "rating": Review.rating["overall"].as_float(),
}


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_by_id(db: Session, review_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.id == review_id).first()

    @staticmethod
    def get_by_booking(db: Session, booking_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.booking_id == booking_id).first()

    @staticmethod
    def add(db: Session, review: Review) -> Review:
        db.add(review)
        return review

    @staticmethod
    def delete(db: Session, review: Review) -> None:
        db.delete(review)

    @staticmethod
    def list_for_plan(
        db: Session,
        plan_id: int,
        page: int,
        limit: int,
        min_rating: Optional[float] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Review], int]:
        query = db.query(Review).filter(Review.plan_id == plan_id, Review.moderation_status == "approved")
        if min_rating is not None:
            query = query.filter(Review.rating["overall"].as_float() >= min_rating)

        column = SORTABLE_FIELDS.get(sort_by, Review.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        reviews = query.order_by(order, Review.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return reviews, total

    @staticmethod
    def list_by_status(db: Session, status: str, page: int, limit: int) -> tuple[list[Review], int]:
        query = db.query(Review).filter(Review.moderation_status == status)
        total = query.count()
        reviews = query.order_by(Review.created_at.asc()).offset((page - 1) * limit).limit(limit).all()
        return reviews, total

    @staticmethod
    def approved_overall_ratings(
        db: Session, plan_id: Optional[int] = None, business_id: Optional[int] = None
    ) -> list[float]:
        query = db.query(Review.rating).filter(Review.moderation_status == "approved")
        if plan_id is not None:
            query = query.filter(Review.plan_id == plan_id)
        if business_id is not None:
            query = query.filter(Review.business_id == business_id)
        return [rating.get("overall") for (rating,) in query.all() if rating and rating.get("overall") is not None]
