"""
Security Utilities
Password hashing, signed session tokens and request fingerprinting
"""

import hashlib
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Optional

from jose import ExpiredSignatureError, JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import Settings
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


@lru_cache(maxsize=4)
def get_password_context(rounds: int = 12) -> CryptContext:
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def hash_password(password: str, rounds: int = 12) -> str:
    """Hash password using bcrypt"""
    return get_password_context(rounds).hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str], rounds: int = 12) -> bool:
    """Verify password against bcrypt hash (constant time)"""
    if not hashed_password:
        return False
    try:
        return get_password_context(rounds).verify(plain_password, hashed_password)
    except (ValueError, TypeError) as e:
        logger.error(f"Password verification error: {e}")
        return False


def check_password_strength(password: str) -> list[str]:
    """Return the list of unmet password requirements (empty when acceptable)"""
    problems = []
    if len(password) < 8:
        problems.append("Password must be at least 8 characters long")
    if len(password.encode("utf-8")) > 72:
        problems.append("Password cannot exceed 72 bytes")
    if not re.search(r"[A-Za-z]", password):
        problems.append("Password must contain at least one letter")
    if not re.search(r"\d", password):
        problems.append("Password must contain at least one number")
    if password.lower() in ("password", "12345678", "qwertyui", "password1"):
        problems.append("This is a commonly used password - choose something unique")
    return problems


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def hash_token(token: str) -> str:
    """Digest stored in place of a refresh token"""
    return hashlib.sha256(token.encode()).hexdigest()


def create_jwt_token(
    settings: Settings,
    data: dict[str, Any],
    expires_delta: timedelta,
    token_type: str,
) -> str:
    """
    Create a signed JWT token

    Args:
        data: Claims to encode in the token
        expires_delta: Token lifetime
        token_type: "access" or "refresh"
    """
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    to_encode.update(
        {
            "type": token_type,
            "iat": now,
            "exp": now + expires_delta,
            "jti": secrets.token_hex(8),
        }
    )
    return jose_jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_token_pair(settings: Settings, user_id: int, role: str, session_id: int) -> dict[str, Any]:
    claims = {"sub": str(user_id), "role": role, "sid": session_id}
    access_token = create_jwt_token(
        settings,
        claims,
        timedelta(minutes=settings.access_token_expire_minutes),
        ACCESS_TOKEN_TYPE,
    )
    refresh_token = create_jwt_token(
        settings,
        claims,
        timedelta(days=settings.refresh_token_expire_days),
        REFRESH_TOKEN_TYPE,
    )
    return {
        "accessToken": access_token,
        "refreshToken": refresh_token,
        "tokenType": "Bearer",
        "expiresIn": settings.access_token_expire_minutes * 60,
    }


def decode_jwt_token(settings: Settings, token: str, expected_type: str) -> dict[str, Any]:
    """
    Verify signature, expiry and token type.

    Raises:
        AuthenticationError: for any invalid, expired or mistyped token
    """
    try:
        payload = jose_jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        raise AuthenticationError("Token has expired") from e
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise AuthenticationError("Invalid token") from e

    if payload.get("type") != expected_type:
        raise AuthenticationError("Invalid token type")
    try:
        payload["sub"] = int(payload["sub"])
        payload["sid"] = int(payload["sid"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Malformed token claims") from e
    return payload


def session_expiry(settings: Settings) -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=settings.refresh_token_expire_days)


# ============================================================================
# REQUEST FINGERPRINTING
# ============================================================================

_BROWSERS = (("Edg", "Edge"), ("Chrome", "Chrome"), ("Firefox", "Firefox"), ("Safari", "Safari"), ("Opera", "Opera"))
_SYSTEMS = (
    ("Windows", "Windows"),
    ("Android", "Android"),
    ("iPhone", "iOS"),
    ("iPad", "iOS"),
    ("Mac OS", "macOS"),
    ("Linux", "Linux"),
)


def parse_user_agent(user_agent: Optional[str]) -> dict[str, Any]:
    ua = user_agent or ""
    browser = next((name for marker, name in _BROWSERS if marker in ua), "Unknown")
    os_name = next((name for marker, name in _SYSTEMS if marker in ua), "Unknown")
    is_mobile = bool(re.search(r"Mobile|Android|iPhone|iPad", ua))
    return {"userAgent": ua[:500], "browser": browser, "os": os_name, "isMobile": is_mobile}


def get_client_ip(request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def log_security_event(
    event_type: str,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
    log: Optional[logging.Logger] = None,
):
    """
    Log security-related events

    Args:
        event_type: Type of security event (login, logout, failed_auth, etc.)
        user_id: User identifier
        ip_address: Client IP address
        details: Additional event details
    """
    log_entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "event_type": event_type,
        "user_id": user_id,
        "ip_address": ip_address,
        "details": details or {},
    }
    (log or logger).info(f"SECURITY_EVENT: {log_entry}")


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time to prevent timing attacks"""
    return secrets.compare_digest(a.encode(), b.encode())
