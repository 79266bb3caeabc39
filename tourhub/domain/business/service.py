"""Business service - Business logic for tour operators"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...auth import ensure_owner_or_admin
from ...config import Settings
from ...database import unit_of_work
from ...errors import ConflictError, NotFoundError, ValidationError
from ...models import User
from ...models_plan import Business
from ...schemas import location_dict
from ...shared.request_context import RequestContext
from ..audit.service import AuditService
from ..notifications.service import NotificationService
from .repository import BusinessRepository
from .schemas import BusinessCreate, BusinessUpdate

module_logger = logging.getLogger(__name__)

DOCUMENT_FIELDS = ("contact_info", "social_links", "banking_info", "verification_documents")


def _document(value: Any) -> Any:
    if value is None:
        return None
    return value.model_dump(by_alias=True, mode="json", exclude_none=True)


def _hours(value: Optional[dict]) -> dict[str, Any]:
    return {day: _document(hours) for day, hours in (value or {}).items()}


class BusinessService:
    """Service layer for business logic"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = BusinessRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)
        self.notifications = NotificationService(db, settings, self.logger)

    def get_business(self, business_id: int, viewer: Optional[User] = None) -> Business:
        business = self.repo.get_by_id(self.db, business_id)
        if not business:
            raise NotFoundError("Business")
        if not business.is_active and not (viewer and (viewer.is_admin or viewer.id == business.owner_id)):
            raise NotFoundError("Business")
        return business

    def list_businesses(self, page: int, limit: int, **filters) -> tuple[list[Business], int]:
        return self.repo.list_businesses(self.db, page, limit, **filters)

    def my_businesses(self, user: User) -> list[Business]:
        return self.repo.get_by_owner(self.db, user.id)

    def create_business(self, user: User, data: BusinessCreate, context: RequestContext) -> Business:
        self.logger.info(f"📥 Registering business '{data.name}' for user {user.id}")
        legal = data.legal_info
        if self.repo.find_legal_conflict(self.db, legal.registration_number, legal.tax_id):
            raise ConflictError(
                "A business with this registration number or tax ID already exists",
                details={"field": "legalInfo"},
            )

        business = Business(
            name=data.name,
            description=data.description,
            logo=data.logo,
            images=data.images,
            location=location_dict(data.location),
            legal_type=legal.type,
            registration_number=legal.registration_number,
            tax_id=legal.tax_id,
            owner_id=user.id,
            operating_hours=_hours(data.operating_hours),
            **{field: _document(getattr(data, field)) for field in DOCUMENT_FIELDS},
        )
        with unit_of_work(self.db):
            self.repo.add(self.db, business)
            self.db.flush()
            self.audit.record(
                "business_create", "business", context, user_id=user.id, resource_id=business.id, status_code=201
            )
        self.logger.info(f"✅ Business {business.id} registered")
        return business

    def update_business(
        self, user: User, business_id: int, data: BusinessUpdate, context: RequestContext
    ) -> Business:
        business = self.get_business(business_id, user)
        ensure_owner_or_admin(user, business.owner_id, "You can only update your own business")

        updates = data.changes()
        with unit_of_work(self.db):
            for key in updates:
                value = getattr(data, key)
                if key == "location":
                    if value is None:
                        raise ValidationError("Location cannot be removed")
                    business.location = location_dict(value)
                elif key == "operating_hours":
                    business.operating_hours = _hours(value)
                elif key in DOCUMENT_FIELDS:
                    if value is not None or key == "banking_info":
                        setattr(business, key, _document(value))
                elif value is not None or key == "logo":
                    setattr(business, key, value)
            self.audit.record(
                "business_update",
                "business",
                context,
                user_id=user.id,
                resource_id=business.id,
                changes={"fields": sorted(updates)},
            )
        self.logger.info(f"✏️ Business {business.id} updated by {user.id}: {sorted(updates)}")
        return business

    def delete_business(self, user: User, business_id: int, context: RequestContext) -> Business:
        """Soft delete the business and take its plans off the catalogue"""
        business = self.get_business(business_id, user)
        ensure_owner_or_admin(user, business.owner_id, "You can only delete your own business")
        with unit_of_work(self.db):
            business.is_active = False
            for plan in business.plans:
                plan.is_active = False
            self.audit.record(
                "business_delete", "business", context, user_id=user.id, resource_id=business.id, severity="warning"
            )
        self.logger.info(f"🗑️ Business {business.id} deactivated by {user.id}")
        return business

    def verify_business(self, admin: User, business_id: int, context: RequestContext) -> Business:
        business = self.get_business(business_id, admin)
        if business.is_verified:
            raise ConflictError("Business is already verified")

        with unit_of_work(self.db):
            business.verify(admin.id)
            self.notifications.notify(
                business.owner_id,
                "business_verified",
                "Business verified",
                f"Your business {business.name} has been verified.",
                sender_id=admin.id,
                priority="high",
                related=("business", business.id),
                action_url=f"/business/{business.id}",
            )
            self.audit.record(
                "business_verify", "business", context, user_id=admin.id, resource_id=business.id
            )
        self.logger.info(f"✅ Business {business.id} verified by admin {admin.id}")
        return business
