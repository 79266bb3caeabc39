"""Plan service - Business logic for tours and experiences"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthorizationError, ConflictError, NotFoundError
from ...models import User
from ...models_plan import Business, Plan
from ...schemas import location_dict
from ...shared.request_context import RequestContext
from ..audit.service import AuditService
from .repository import PlanRepository
from .schemas import PlanCreate, PlanUpdate

module_logger = logging.getLogger(__name__)

SLUG_ATTEMPTS = 3
NESTED_FIELDS = ("price", "duration", "capacity", "age_restriction", "schedule", "seo")


def _nested(value: Any) -> Any:
    return value.model_dump(by_alias=True, mode="json") if hasattr(value, "model_dump") else value


class PlanService:
    """Service layer for plan business logic"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = PlanRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)

    def get_plan(self, plan_id: int, viewer: Optional[User] = None) -> Plan:
        plan = self.repo.get_by_id(self.db, plan_id)
        if not plan:
            raise NotFoundError("Plan")
        if not plan.is_active and not (viewer and self.can_manage(viewer, plan)):
            raise NotFoundError("Plan")
        return plan

    def can_manage(self, user: User, plan: Plan) -> bool:
        if user.is_admin or plan.created_by == user.id:
            return True
        return bool(plan.business and plan.business.owner_id == user.id)

    def list_plans(self, page: int, limit: int, **filters) -> tuple[list[Plan], int]:
        return self.repo.list_plans(self.db, page, limit, **filters)

    def view_plan(self, plan_id: int, viewer: Optional[User] = None) -> Plan:
        """Fetch a plan for display and count the view"""
        plan = self.get_plan(plan_id, viewer)
        with unit_of_work(self.db):
            plan.bump_stat("views")
        return plan

    def _resolve_business(self, user: User, business_id: Optional[int]) -> Optional[Business]:
        if business_id is None:
            return None
        business = self.db.query(Business).filter(Business.id == business_id).first()
        if not business or not business.is_active:
            raise NotFoundError("Business")
        if business.owner_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only add plans to your own business")
        return business

    def create_plan(self, user: User, data: PlanCreate, context: RequestContext) -> Plan:
        self.logger.info(f"📥 Creating plan '{data.title}' for user {user.id}")
        business = self._resolve_business(user, data.business_id)
        values = data.model_dump(exclude={"location", "business_id", *NESTED_FIELDS})

        for attempt in range(1, SLUG_ATTEMPTS + 1):
            plan = Plan(
                **values,
                location=location_dict(data.location),
                created_by=user.id,
                business_id=business.id if business else None,
                **{field: _nested(getattr(data, field)) for field in NESTED_FIELDS},
            )
            try:
                with unit_of_work(self.db):
                    self.repo.add(self.db, plan)
                    if business:
                        business.bump_stat("totalPlans")
                    self.db.flush()
                    self.audit.record(
                        "plan_create", "plan", context, user_id=user.id, resource_id=plan.id, status_code=201
                    )
                self.logger.info(f"✅ Plan {plan.id} created with slug {plan.slug}")
                return plan
            except ConflictError as e:
                if (e.details or {}).get("field") != "slug" or attempt == SLUG_ATTEMPTS:
                    raise
                self.logger.warning(f"⚠️ Slug collision on attempt {attempt}, regenerating")
        raise ConflictError("Could not generate a unique slug")

    def update_plan(self, user: User, plan_id: int, data: PlanUpdate, context: RequestContext) -> Plan:
        plan = self.get_plan(plan_id, user)
        if not self.can_manage(user, plan):
            raise AuthorizationError("You can only update your own plans")

        updates = data.changes()
        with unit_of_work(self.db):
            for key in updates:
                value = getattr(data, key)
                if key == "location":
                    plan.location = location_dict(value)
                elif key in NESTED_FIELDS:
                    setattr(plan, key, _nested(value))
                elif value is not None:
                    setattr(plan, key, value)
            self.audit.record(
                "plan_update",
                "plan",
                context,
                user_id=user.id,
                resource_id=plan.id,
                changes={"fields": sorted(updates)},
            )
        self.logger.info(f"✏️ Plan {plan.id} updated by {user.id}: {sorted(updates)}")
        return plan

    def delete_plan(self, user: User, plan_id: int, context: RequestContext) -> Plan:
        """Soft delete, existing bookings keep their reference"""
        plan = self.get_plan(plan_id, user)
        if not self.can_manage(user, plan):
            raise AuthorizationError("You can only delete your own plans")
        if not plan.is_active:
            raise NotFoundError("Plan")
        with unit_of_work(self.db):
            plan.is_active = False
            if plan.business:
                plan.business.bump_stat("totalPlans", -1)
            self.audit.record("plan_delete", "plan", context, user_id=user.id, resource_id=plan.id)
        self.logger.info(f"🗑️ Plan {plan.id} deactivated by {user.id}")
        return plan

    def toggle_favorite(self, user: User, plan_id: int) -> bool:
        """Add or remove the plan from the user's favorites, returns the new state"""
        plan = self.get_plan(plan_id, user)
        with unit_of_work(self.db):
            if user.remove_favorite(str(plan.id)):
                plan.bump_stat("favorites", -1)
                favorited = False
            else:
                user.add_favorite(str(plan.id), "plan")
                plan.bump_stat("favorites")
                favorited = True
        return favorited
