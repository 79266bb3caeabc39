"""Business repository - Database operations for businesses"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models_plan import Business


class BusinessRepository:
    """Repository for business database operations"""

    @staticmethod
    def get_by_id(db: Session, business_id: int) -> Optional[Business]:
        return db.query(Business).filter(Business.id == business_id).first()

    @staticmethod
    def get_by_owner(db: Session, owner_id: int) -> list[Business]:
        return db.query(Business).filter(Business.owner_id == owner_id).order_by(Business.created_at.desc()).all()

    @staticmethod
    def find_legal_conflict(
        db: Session, registration_number: str, tax_id: str, exclude_id: Optional[int] = None
    ) -> Optional[Business]:
        query = db.query(Business).filter(
            or_(Business.registration_number == registration_number, Business.tax_id == tax_id)
        )
        if exclude_id is not None:
            query = query.filter(Business.id != exclude_id)
        return query.first()

    @staticmethod
    def add(db: Session, business: Business) -> Business:
        db.add(business)
        return business

    @staticmethod
    def list_businesses(
        db: Session,
        page: int,
        limit: int,
        search: Optional[str] = None,
        city: Optional[str] = None,
        is_verified: Optional[bool] = None,
        owner_id: Optional[int] = None,
        include_inactive: bool = False,
    ) -> tuple[list[Business], int]:
        query = db.query(Business)
        if not include_inactive:
            query = query.filter(Business.is_active.is_(True))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Business.name.ilike(pattern), Business.description.ilike(pattern)))
        if city:
            query = query.filter(Business.location["city"].as_string().ilike(f"%{city}%"))
        if is_verified is not None:
            query = query.filter(Business.is_verified.is_(is_verified))
        if owner_id is not None:
            query = query.filter(Business.owner_id == owner_id)

        total = query.count()
        items = (
            query.order_by(Business.created_at.desc(), Business.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return items, total
