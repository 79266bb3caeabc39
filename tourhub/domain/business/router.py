"""Business router - FastAPI endpoints for businesses"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_optional_user, get_settings, require_admin, require_business_owner
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from .schemas import BusinessCreate, BusinessResponse, BusinessUpdate
from .service import BusinessService

router = APIRouter(prefix="/business", tags=["Business"])


def get_business_service(request: Request, db: Session = Depends(get_db)) -> BusinessService:
    """Dependency injection for BusinessService"""
    return BusinessService(db, get_settings(request), get_logger(request).getChild("business"))


@router.get("")
async def list_businesses(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    city: Optional[str] = None,
    is_verified: Optional[bool] = Query(None, alias="isVerified"),
    service: BusinessService = Depends(get_business_service),
):
    items, total = service.list_businesses(page, limit, search=search, city=city, is_verified=is_verified)
    return envelope(
        "Businesses retrieved successfully",
        {
            "businesses": [BusinessResponse.model_validate(b).dump() for b in items],
            "pagination": paginate(page, limit, total, "totalBusinesses"),
        },
    )


@router.post("", status_code=201)
async def create_business(
    data: BusinessCreate,
    request: Request,
    current_user: User = Depends(require_business_owner),
    service: BusinessService = Depends(get_business_service),
):
    business = service.create_business(current_user, data, RequestContext.from_request(request))
    return envelope("Business created successfully", BusinessResponse.model_validate(business).dump())


@router.get("/mine")
async def my_businesses(
    current_user: User = Depends(get_current_user),
    service: BusinessService = Depends(get_business_service),
):
    items = service.my_businesses(current_user)
    return envelope(
        "Businesses retrieved successfully",
        {"businesses": [BusinessResponse.model_validate(b).dump() for b in items]},
    )


@router.get("/{business_id}")
async def get_business(
    business_id: int,
    current_user: Optional[User] = Depends(get_optional_user),
    service: BusinessService = Depends(get_business_service),
):
    business = service.get_business(business_id, current_user)
    return envelope("Business retrieved successfully", BusinessResponse.model_validate(business).dump())


@router.put("/{business_id}")
async def update_business(
    business_id: int,
    data: BusinessUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: BusinessService = Depends(get_business_service),
):
    business = service.update_business(current_user, business_id, data, RequestContext.from_request(request))
    return envelope("Business updated successfully", BusinessResponse.model_validate(business).dump())


@router.delete("/{business_id}")
async def delete_business(
    business_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: BusinessService = Depends(get_business_service),
):
    service.delete_business(current_user, business_id, RequestContext.from_request(request))
    return envelope("Business deleted successfully")


@router.put("/{business_id}/verify")
async def verify_business(
    business_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    service: BusinessService = Depends(get_business_service),
):
    business = service.verify_business(admin, business_id, RequestContext.from_request(request))
    return envelope("Business verified successfully", BusinessResponse.model_validate(business).dump())
