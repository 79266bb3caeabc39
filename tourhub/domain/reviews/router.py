"""Review router - FastAPI endpoints for reviews"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_settings, require_admin
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from .schemas import BusinessReplyCreate, ModerationUpdate, ReportCreate, ReviewCreate, ReviewResponse, ReviewUpdate
from .service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def get_review_service(request: Request, db: Session = Depends(get_db)) -> ReviewService:
    """Dependency injection for ReviewService"""
    return ReviewService(db, get_settings(request), get_logger(request).getChild("reviews"))


@router.post("", status_code=201)
async def create_review(
    data: ReviewCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create_review(current_user, data, RequestContext.from_request(request))
    return envelope("Review created successfully", ReviewResponse.from_review(review))


@router.get("/plan/{plan_id}")
async def list_plan_reviews(
    plan_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    min_rating: Optional[float] = Query(None, ge=1, le=5, alias="minRating"),
    sort_by: Literal["createdAt", "rating"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    service: ReviewService = Depends(get_review_service),
):
    reviews, total = service.list_for_plan(
        plan_id, page, limit, min_rating=min_rating, sort_by=sort_by, sort_order=sort_order
    )
    return envelope(
        "Reviews retrieved successfully",
        {
            "reviews": [ReviewResponse.from_review(r) for r in reviews],
            "pagination": paginate(page, limit, total, "totalReviews"),
        },
    )


@router.get("/moderation")
async def list_for_moderation(
    status: Literal["pending", "flagged", "rejected", "approved"] = "flagged",
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    _admin: User = Depends(require_admin),
    service: ReviewService = Depends(get_review_service),
):
    reviews, total = service.list_by_status(status, page, limit)
    return envelope(
        "Reviews retrieved successfully",
        {
            "reviews": [ReviewResponse.from_review(r) for r in reviews],
            "pagination": paginate(page, limit, total, "totalReviews"),
        },
    )


@router.get("/{review_id}")
async def get_review(review_id: int, service: ReviewService = Depends(get_review_service)):
    review = service.get_review(review_id)
    return envelope("Review retrieved successfully", ReviewResponse.from_review(review))


@router.put("/{review_id}")
async def update_review(
    review_id: int,
    data: ReviewUpdate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.update_review(current_user, review_id, data)
    return envelope("Review updated successfully", ReviewResponse.from_review(review))


@router.delete("/{review_id}")
async def delete_review(
    review_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    service.delete_review(current_user, review_id, RequestContext.from_request(request))
    return envelope("Review deleted successfully")


@router.post("/{review_id}/helpful")
async def mark_helpful(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.vote_helpful(current_user, review_id)
    return envelope("Vote recorded", {"helpfulVotesCount": review.helpful_votes_count, "isHelpful": True})


@router.delete("/{review_id}/helpful")
async def unmark_helpful(
    review_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.vote_helpful(current_user, review_id, helpful=False)
    return envelope("Vote removed", {"helpfulVotesCount": review.helpful_votes_count, "isHelpful": False})


@router.post("/{review_id}/report")
async def report_review(
    review_id: int,
    data: ReportCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    service.report_review(current_user, review_id, data)
    return envelope("Review reported")


@router.put("/{review_id}/moderate")
async def moderate_review(
    review_id: int,
    data: ModerationUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    service: ReviewService = Depends(get_review_service),
):
    review = service.moderate_review(admin, review_id, data, RequestContext.from_request(request))
    return envelope("Review moderated", ReviewResponse.from_review(review))


@router.post("/{review_id}/response")
async def respond_to_review(
    review_id: int,
    data: BusinessReplyCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.respond(current_user, review_id, data)
    return envelope("Response added", ReviewResponse.from_review(review))
