import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .errors import AppError, AuthenticationError, AuthorizationError
from .models import ADMIN_ROLES, AuthSession, User, UserRole
from .security_utils import ACCESS_TOKEN_TYPE, decode_jwt_token

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_logger(request: Request) -> logging.Logger:
    return request.app.state.logger


def authenticate_token(db: Session, settings: Settings, token: str) -> tuple[User, AuthSession]:
    """Resolve a bearer token to its active user and session."""
    payload = decode_jwt_token(settings, token, ACCESS_TOKEN_TYPE)

    session = db.query(AuthSession).filter(AuthSession.id == payload["sid"]).first()
    if not session or session.user_id != payload["sub"] or not session.is_valid():
        logger.warning(f"⚠️ Token presented for inactive session {payload['sid']}")
        raise AuthenticationError("Session expired or revoked")

    user = db.query(User).filter(User.id == payload["sub"]).first()
    if not user:
        raise AuthenticationError("User not found")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user, session


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Require a valid access token and return its user"""
    if credentials is None:
        raise AuthenticationError("Access token required")

    user, session = authenticate_token(db, get_settings(request), credentials.credentials)
    request.state.user_id = user.id
    request.state.session_id = session.id
    return user


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Return the caller when a valid token is supplied, otherwise None"""
    if credentials is None:
        return None
    try:
        user, session = authenticate_token(db, get_settings(request), credentials.credentials)
    except AppError as e:
        logger.debug(f"Optional auth ignored invalid token: {e.message}")
        return None
    request.state.user_id = user.id
    request.state.session_id = session.id
    return user


def require_roles(*roles: str):
    """Dependency factory restricting a route to the given roles"""
    allowed = {r.value if isinstance(r, UserRole) else r for r in roles}

    async def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            logger.warning(f"🚫 User {current_user.id} ({current_user.role}) denied, requires {sorted(allowed)}")
            raise AuthorizationError("Insufficient permissions")
        return current_user

    return role_checker


require_admin = require_roles(*ADMIN_ROLES)
require_business_owner = require_roles(UserRole.BUSINESS_OWNER, *ADMIN_ROLES)


def ensure_owner_or_admin(user: User, owner_id: Optional[int], message: str = "Access denied") -> None:
    if user.is_admin or (owner_id is not None and user.id == owner_id):
        return
    raise AuthorizationError(message)
