"""Auth service - registration, login and session lifecycle"""

import logging
import secrets
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthenticationError, AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import SELF_ASSIGNABLE_ROLES, AuthSession, User
from ...security_utils import (
    REFRESH_TOKEN_TYPE,
    check_password_strength,
    constant_time_compare,
    create_token_pair,
    decode_jwt_token,
    hash_password,
    hash_token,
    log_security_event,
    parse_user_agent,
    session_expiry,
    verify_password,
)
from ...shared.request_context import RequestContext
from ...utils.dates import utcnow
from ..audit.service import AuditService
from .repository import AuthRepository
from .schemas import RegisterRequest

module_logger = logging.getLogger(__name__)


class AuthService:
    """Service layer for authentication"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = AuthRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def _open_session(self, user: User, context: RequestContext) -> dict[str, Any]:
        """Create a session row and the token pair bound to it (caller commits)"""
        session = AuthSession(
            user_id=user.id,
            refresh_token_hash=hash_token(secrets.token_hex(32)),
            device_info=parse_user_agent(context.user_agent),
            ip_address=context.ip_address,
            location={"ip": context.ip_address},
            expires_at=session_expiry(self.settings),
        )
        self.db.add(session)
        self.db.flush()

        tokens = create_token_pair(self.settings, user.id, user.role, session.id)
        session.refresh_token_hash = hash_token(tokens["refreshToken"])
        return tokens

    def revoke_user_sessions(
        self,
        user_id: int,
        reason: str,
        revoked_by: Optional[int] = None,
        except_session_id: Optional[int] = None,
    ) -> int:
        """Revoke every active session of a user (caller commits)"""
        sessions = self.repo.sessions_for_revocation(self.db, user_id, except_session_id)
        now = utcnow()
        for session in sessions:
            session.revoke(reason, revoked_by, now)
        if sessions:
            self.logger.info(f"🔒 Revoked {len(sessions)} sessions for user {user_id} ({reason})")
        return len(sessions)

    # ------------------------------------------------------------------
    # Registration / login
    # ------------------------------------------------------------------

    def register(self, data: RegisterRequest, context: RequestContext) -> tuple[User, dict[str, Any]]:
        self.logger.info(f"📥 Registering user {data.email}")

        if data.role not in SELF_ASSIGNABLE_ROLES:
            raise AuthorizationError("This role cannot be self-assigned")
        problems = check_password_strength(data.password)
        if problems:
            raise ValidationError.from_fields([{"field": "password", "message": p} for p in problems])
        if self.repo.get_user_by_email(self.db, data.email):
            raise ConflictError("User already exists with this email", details={"field": "email"})

        with unit_of_work(self.db):
            user = User(
                name=data.name,
                email=data.email,
                password_hash=hash_password(data.password, self.settings.bcrypt_rounds),
                role=data.role,
                city=data.city or self.settings.default_city,
                is_resident=data.is_resident,
                phone=data.phone,
                last_login=utcnow(),
            )
            self.db.add(user)
            self.db.flush()
            tokens = self._open_session(user, context)
            self.audit.record("register", "user", context, user_id=user.id, resource_id=user.id, status_code=201)

        log_security_event("register", user.id, context.ip_address, log=self.logger)
        return user, tokens

    def login(self, email: str, password: str, context: RequestContext) -> tuple[User, dict[str, Any]]:
        user = self.repo.get_user_by_email(self.db, email)
        if not user or not verify_password(password, user.password_hash, self.settings.bcrypt_rounds):
            self.logger.warning(f"⚠️ Failed login for {email} from {context.ip_address}")
            with unit_of_work(self.db):
                self.audit.record(
                    "login_failed",
                    "auth",
                    context,
                    user_id=user.id if user else None,
                    status_code=401,
                    severity="warning",
                    details={"email": email},
                )
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthorizationError("Account is deactivated")

        with unit_of_work(self.db):
            user.last_login = utcnow()
            tokens = self._open_session(user, context)
            self.audit.record("login", "auth", context, user_id=user.id, resource_id=user.id)

        log_security_event("login", user.id, context.ip_address, log=self.logger)
        return user, tokens

    def refresh(self, refresh_token: str, context: RequestContext) -> dict[str, Any]:
        payload = decode_jwt_token(self.settings, refresh_token, REFRESH_TOKEN_TYPE)
        session = self.repo.get_session(self.db, payload["sid"])
        if not session or session.user_id != payload["sub"] or not session.is_valid():
            raise AuthenticationError("Session expired or revoked")

        if not constant_time_compare(hash_token(refresh_token), session.refresh_token_hash):
            # An already-rotated refresh token was replayed
            with unit_of_work(self.db):
                session.revoke("security_breach")
                self.audit.record(
                    "refresh_token_reuse",
                    "auth",
                    context,
                    user_id=session.user_id,
                    resource_id=session.id,
                    status_code=401,
                    severity="critical",
                    category="security",
                )
            self.logger.warning(f"🚨 Refresh token reuse detected for session {session.id}")
            raise AuthenticationError("Refresh token is no longer valid")

        user = self.repo.get_user_by_id(self.db, session.user_id)
        if not user or not user.is_active:
            raise AuthenticationError("Account is deactivated")

        with unit_of_work(self.db):
            tokens = create_token_pair(self.settings, user.id, user.role, session.id)
            session.refresh_token_hash = hash_token(tokens["refreshToken"])
            session.expires_at = session_expiry(self.settings)
            session.touch()
        return tokens

    def logout(self, user: User, session_id: int, context: RequestContext) -> None:
        session = self.repo.get_session(self.db, session_id)
        with unit_of_work(self.db):
            if session:
                session.revoke("user_logout", user.id)
            self.audit.record("logout", "auth", context, user_id=user.id, resource_id=session_id)
        log_security_event("logout", user.id, context.ip_address, log=self.logger)

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    def list_sessions(self, user: User) -> list[AuthSession]:
        return self.repo.active_sessions(self.db, user.id, utcnow())

    def revoke_session(self, user: User, session_id: int, context: RequestContext) -> None:
        session = self.repo.get_session(self.db, session_id)
        if not session:
            raise NotFoundError("Session")
        if session.user_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only revoke your own sessions")
        reason = "user_logout" if session.user_id == user.id else "admin_revoke"
        with unit_of_work(self.db):
            session.revoke(reason, user.id)
            self.audit.record(
                "session_revoke", "session", context, user_id=user.id, resource_id=session_id
            )

    def purge_stale_sessions(self) -> int:
        now = utcnow()
        cutoff = now - timedelta(days=self.settings.revoked_session_retention_days)
        removed = self.repo.delete_stale_sessions(self.db, now, cutoff)
        if removed:
            self.logger.info(f"🧹 Purged {removed} expired or revoked sessions")
        return removed
