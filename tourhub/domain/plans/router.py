"""Plan router - FastAPI endpoints for plans"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_optional_user, get_settings, require_business_owner
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from .schemas import PlanCreate, PlanResponse, PlanSummary, PlanUpdate
from .service import PlanService

router = APIRouter(prefix="/plans", tags=["Plans"])


def get_plan_service(request: Request, db: Session = Depends(get_db)) -> PlanService:
    """Dependency injection for PlanService"""
    return PlanService(db, get_settings(request), get_logger(request).getChild("plans"))


@router.get("")
async def list_plans(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[str] = None,
    city: Optional[str] = None,
    difficulty: Optional[str] = None,
    min_price: Optional[float] = Query(None, ge=0, alias="minPrice"),
    max_price: Optional[float] = Query(None, ge=0, alias="maxPrice"),
    business_id: Optional[int] = Query(None, alias="businessId"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    service: PlanService = Depends(get_plan_service),
):
    plans, total = service.list_plans(
        page,
        limit,
        search=search,
        category=category,
        city=city,
        difficulty=difficulty,
        min_price=min_price,
        max_price=max_price,
        business_id=business_id,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return envelope(
        "Plans retrieved successfully",
        {
            "plans": [PlanSummary.model_validate(p).dump() for p in plans],
            "pagination": paginate(page, limit, total, "totalPlans"),
        },
    )


@router.post("", status_code=201)
async def create_plan(
    data: PlanCreate,
    request: Request,
    current_user: User = Depends(require_business_owner),
    service: PlanService = Depends(get_plan_service),
):
    plan = service.create_plan(current_user, data, RequestContext.from_request(request))
    return envelope("Plan created successfully", PlanResponse.model_validate(plan).dump())


@router.get("/{plan_id}")
async def get_plan(
    plan_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: PlanService = Depends(get_plan_service),
):
    plan = service.view_plan(plan_id, current_user)
    return envelope("Plan retrieved successfully", PlanResponse.model_validate(plan).dump())


@router.put("/{plan_id}")
async def update_plan(
    plan_id: int,
    data: PlanUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    plan = service.update_plan(current_user, plan_id, data, RequestContext.from_request(request))
    return envelope("Plan updated successfully", PlanResponse.model_validate(plan).dump())


@router.delete("/{plan_id}")
async def delete_plan(
    plan_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    service.delete_plan(current_user, plan_id, RequestContext.from_request(request))
    return envelope("Plan deleted successfully")


@router.post("/{plan_id}/favorite")
async def toggle_favorite(
    plan_id: int,
    current_user: User = Depends(get_current_user),
    service: PlanService = Depends(get_plan_service),
):
    favorited = service.toggle_favorite(current_user, plan_id)
    message = "Plan added to favorites" if favorited else "Plan removed from favorites"
    return envelope(message, {"isFavorite": favorited})
