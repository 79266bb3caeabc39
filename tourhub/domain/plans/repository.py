"""Plan repository - Database operations for plans"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_plan import Plan

SORTABLE_FIELDS = {
    "createdAt": Plan.created_at,
    "title": Plan.title,
    "price": Plan.price["amount"].as_float(),
    "rating": Plan.rating["average"].as_float(),
}


class PlanRepository:
    """Repository for plan database operations"""

    @staticmethod
    def get_by_id(db: Session, plan_id: int) -> Optional[Plan]:
        return db.query(Plan).filter(Plan.id == plan_id).first()

    @staticmethod
    def get_by_slug(db: Session, slug: str) -> Optional[Plan]:
        return db.query(Plan).filter(Plan.slug == slug).first()

    @staticmethod
    def add(db: Session, plan: Plan) -> Plan:
        db.add(plan)
        return plan

    @staticmethod
    def list_plans(
        db: Session,
        page: int,
        limit: int,
        search: Optional[str] = None,
        category: Optional[str] = None,
        city: Optional[str] = None,
        difficulty: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        business_id: Optional[int] = None,
        created_by: Optional[int] = None,
        include_inactive: bool = False,
        sort_by: str = "createdAt",
        sort_order: str = "desc",
    ) -> tuple[list[Plan], int]:
        query = db.query(Plan)
        if not include_inactive:
            query = query.filter(Plan.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(Plan.title.ilike(pattern), Plan.short_description.ilike(pattern), Plan.description.ilike(pattern))
            )
        if category:
            query = query.filter(Plan.category == category)
        if city:
            query = query.filter(Plan.city.ilike(f"%{city}%"))
        if difficulty:
            query = query.filter(Plan.difficulty == difficulty)
        if min_price is not None:
            query = query.filter(Plan.price["amount"].as_float() >= min_price)
        if max_price is not None:
            query = query.filter(Plan.price["amount"].as_float() <= max_price)
        if business_id is not None:
            query = query.filter(Plan.business_id == business_id)
        if created_by is not None:
            query = query.filter(Plan.created_by == created_by)

        column = SORTABLE_FIELDS.get(sort_by, Plan.created_at)
        order = column.asc() if sort_order == "asc" else column.desc()

        total = query.count()
        plans = query.order_by(order, Plan.id.desc()).offset((page - 1) * limit).limit(limit).all()
        return plans, total
