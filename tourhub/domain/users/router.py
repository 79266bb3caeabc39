"""User router - profiles, preferences and favorite destinations"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_settings, require_admin
from ...database import get_db
from ...models import User
from ...responses import envelope, paginate
from ...shared.request_context import RequestContext
from .schemas import (
    AvatarUpdate,
    ChangePasswordRequest,
    FavoriteCreate,
    PreferencesUpdate,
    PublicUserResponse,
    UserResponse,
    UserStats,
    UserUpdate,
)
from .service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


def get_user_service(request: Request, db: Session = Depends(get_db)) -> UserService:
    """Dependency injection for UserService"""
    return UserService(db, get_settings(request), get_logger(request).getChild("users"))


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    role: Optional[str] = None,
    city: Optional[str] = None,
    is_resident: Optional[bool] = Query(None, alias="isResident"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    _admin: User = Depends(require_admin),
    service: UserService = Depends(get_user_service),
):
    users, total = service.list_users(
        page,
        limit,
        search=search,
        role=role,
        city=city,
        is_resident=is_resident,
        is_active=is_active,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return envelope(
        "Users retrieved successfully",
        {
            "users": [UserResponse.model_validate(u).dump() for u in users],
            "pagination": paginate(page, limit, total, "totalUsers"),
        },
    )


@router.put("/me/change-password")
async def change_password(
    data: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    revoked = service.change_password(
        current_user, data, request.state.session_id, RequestContext.from_request(request)
    )
    return envelope("Password changed successfully", {"revokedSessions": revoked})


@router.put("/me/preferences")
async def update_preferences(
    data: PreferencesUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    preferences = service.update_preferences(current_user, data)
    return envelope("Preferences updated successfully", {"preferences": preferences})


@router.put("/me/avatar")
async def update_avatar(
    data: AvatarUpdate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = service.update_avatar(current_user, data.avatar_url)
    return envelope("Avatar updated successfully", {"avatar": user.avatar})


@router.get("/me/stats")
async def get_my_stats(
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    stats = service.get_stats(current_user.id)
    return envelope("User stats retrieved successfully", UserStats.model_validate(stats).dump())


@router.get("/me/favorites")
async def list_favorites(current_user: User = Depends(get_current_user)):
    return envelope("Favorites retrieved successfully", {"favorites": current_user.favorite_destinations or []})


@router.post("/me/favorites", status_code=201)
async def add_favorite(
    data: FavoriteCreate,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    favorites = service.add_favorite(current_user, data)
    return envelope("Destination added to favorites", {"favorites": favorites})


@router.delete("/me/favorites/{destination_id}")
async def remove_favorite(
    destination_id: str,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    favorites, removed = service.remove_favorite(current_user, destination_id)
    message = "Destination removed from favorites" if removed else "Destination was not in favorites"
    return envelope(message, {"favorites": favorites})


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = service.get_user(user_id)
    if current_user.id == user.id or current_user.is_admin:
        return envelope("User retrieved successfully", UserResponse.model_validate(user).dump())
    return envelope("User retrieved successfully", PublicUserResponse.model_validate(user).dump())


@router.get("/{user_id}/stats")
async def get_user_stats(
    user_id: int,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    service.ensure_self_or_admin(current_user, user_id)
    stats = service.get_stats(user_id)
    return envelope("User stats retrieved successfully", UserStats.model_validate(stats).dump())


@router.put("/{user_id}")
async def update_user(
    user_id: int,
    data: UserUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    user = service.update_user(current_user, user_id, data, RequestContext.from_request(request))
    return envelope("User updated successfully", UserResponse.model_validate(user).dump())


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
):
    service.delete_user(current_user, user_id, RequestContext.from_request(request))
    return envelope("User deleted successfully")
