"""Auth router - registration, login, token refresh and sessions"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_logger, get_settings
from ...database import get_db
from ...models import User
from ...rate_limiter import auth_rate_limit
from ...responses import envelope
from ...shared.request_context import RequestContext
from ..users.schemas import UserResponse
from .schemas import LoginRequest, RefreshRequest, RegisterRequest, SessionResponse
from .service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_auth_service(request: Request, db: Session = Depends(get_db)) -> AuthService:
    """Dependency injection for AuthService"""
    return AuthService(db, get_settings(request), get_logger(request).getChild("auth"))


@router.post("/register", status_code=201, dependencies=[Depends(auth_rate_limit)])
async def register(
    data: RegisterRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    user, tokens = service.register(data, RequestContext.from_request(request))
    return envelope(
        "User registered successfully",
        {"user": UserResponse.model_validate(user).dump(), "tokens": tokens},
    )


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(
    data: LoginRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    user, tokens = service.login(data.email, data.password, RequestContext.from_request(request))
    return envelope(
        "Login successful",
        {"user": UserResponse.model_validate(user).dump(), "tokens": tokens},
    )


@router.post("/refresh")
async def refresh(
    data: RefreshRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
):
    tokens = service.refresh(data.refresh_token, RequestContext.from_request(request))
    return envelope("Token refreshed successfully", {"tokens": tokens})


@router.post("/logout")
async def logout(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.logout(current_user, request.state.session_id, RequestContext.from_request(request))
    return envelope("Logout successful")


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return envelope("User profile retrieved successfully", {"user": UserResponse.model_validate(current_user).dump()})


@router.get("/sessions")
async def list_sessions(
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    sessions = service.list_sessions(current_user)
    return envelope(
        "Sessions retrieved successfully",
        {
            "sessions": [
                {**SessionResponse.model_validate(s).dump(), "current": s.id == request.state.session_id}
                for s in sessions
            ]
        },
    )


@router.delete("/sessions/{session_id}")
async def revoke_session(
    session_id: int,
    request: Request,
    current_user: User = Depends(get_current_user),
    service: AuthService = Depends(get_auth_service),
):
    service.revoke_session(current_user, session_id, RequestContext.from_request(request))
    return envelope("Session revoked")
