"""User repository - Database operations for users"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import User
from ...models_booking import Booking
from ...models_plan import Plan
from ...models_review import Review

SORTABLE_FIELDS = {
    "createdAt": User.created_at,
    "name": User.name,
    "email": User.email,
    "city": User.city,
    "lastLogin": User.last_login,
}


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def list_users(
        db: Session,
        page: int,
        limit: int,
        search: Optional[str] = None,
        role: Optional[str] = None,
        city: Optional[str] = None,
        is_resident: Optional[bool] = None,
        is_active: Optional[bool] = None,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[User], int]:
        query = db.query(User)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.city.ilike(pattern)))
        if role:
            query = query.filter(User.role == role)
        if city:
            query = query.filter(User.city.ilike(f"%{city}%"))
        if is_resident is not None:
            query = query.filter(User.is_resident.is_(is_resident))
        if is_active is not None:
            query = query.filter(User.is_active.is_(is_active))

        column = SORTABLE_FIELDS.get(sort_by, User.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        users = query.order_by(order, User.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return users, total

    @staticmethod
    def activity_counts(db: Session, user_id: int) -> dict[str, int]:
        bookings = db.query(func.count(Booking.id)).filter(Booking.user_id == user_id).scalar() or 0
        reviews = db.query(func.count(Review.id)).filter(Review.user_id == user_id).scalar() or 0
        plans = db.query(func.count(Plan.id)).filter(Plan.created_by == user_id).scalar() or 0
        return {"bookings": bookings, "reviews": reviews, "plans": plans}
