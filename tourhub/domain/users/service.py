"""User service - Business logic for profiles, favorites and preferences"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from ...config import Settings
from ...database import unit_of_work
from ...errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ...models import User
from ...security_utils import check_password_strength, hash_password, verify_password
from ...shared.request_context import RequestContext
from ...utils.dates import to_naive_utc
from ..audit.service import AuditService
from ..auth.service import AuthService
from .repository import UserRepository
from .schemas import ChangePasswordRequest, FavoriteCreate, PreferencesUpdate, UserUpdate

module_logger = logging.getLogger(__name__)


class UserService:
    """Service layer for user business logic"""

    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.repo = UserRepository()
        self.logger = logger or module_logger
        self.audit = AuditService(db, self.logger)

    def get_user(self, user_id: int) -> User:
        user = self.repo.get_by_id(self.db, user_id)
        if not user:
            raise NotFoundError("User")
        return user

    def list_users(self, page: int, limit: int, **filters) -> tuple[list[User], int]:
        users, total = self.repo.list_users(self.db, page, limit, **filters)
        self.logger.info(f"Retrieved {len(users)} users (page {page})")
        return users, total

    def ensure_self_or_admin(self, actor: User, user_id: int) -> None:
        if actor.id != user_id and not actor.is_admin:
            raise AuthorizationError("You can only manage your own account")

    def update_user(self, actor: User, user_id: int, data: UserUpdate, context: RequestContext) -> User:
        self.ensure_self_or_admin(actor, user_id)
        user = self.get_user(user_id)
        updates = data.changes()

        if "role" in updates and updates["role"] != user.role:
            if not actor.is_admin:
                raise AuthorizationError("Only administrators can change roles")
            if updates["role"] == "super_admin" and actor.role != "super_admin":
                raise AuthorizationError("Only super administrators can grant super admin")

        if updates.get("email") and updates["email"] != user.email:
            if self.repo.get_by_email(self.db, updates["email"]):
                raise ConflictError("Email already exists", details={"field": "email"})

        before = {key: getattr(user, key) for key in updates if key != "social_links"}
        with unit_of_work(self.db):
            for key, value in updates.items():
                if key == "social_links":
                    links = dict(user.social_links or {})
                    links.update({k: v for k, v in (value or {}).items() if v is not None})
                    user.social_links = links
                elif key == "date_of_birth":
                    user.date_of_birth = to_naive_utc(value)
                elif value is not None:
                    setattr(user, key, value)

            if "role" in updates and before.get("role") != user.role:
                self.audit.record(
                    "role_change",
                    "user",
                    context,
                    user_id=actor.id,
                    resource_id=user.id,
                    changes={"before": {"role": before["role"]}, "after": {"role": user.role}, "fields": ["role"]},
                    severity="warning",
                )
            if "email" in updates and before.get("email") != user.email:
                self.audit.record("email_change", "user", context, user_id=actor.id, resource_id=user.id)

        self.logger.info(f"✏️ User {user.id} updated by {actor.id}: {sorted(updates)}")
        return user

    def delete_user(self, actor: User, user_id: int, context: RequestContext) -> User:
        """Soft delete: deactivate, free the email and revoke every session"""
        self.ensure_self_or_admin(actor, user_id)
        user = self.get_user(user_id)
        if not user.is_active:
            raise NotFoundError("User")

        with unit_of_work(self.db):
            user.soft_delete()
            AuthService(self.db, self.settings, self.logger).revoke_user_sessions(
                user.id, "account_deactivation", revoked_by=actor.id
            )
            self.audit.record(
                "user_delete", "user", context, user_id=actor.id, resource_id=user.id, severity="warning"
            )
        self.logger.info(f"🗑️ User {user.id} deactivated by {actor.id}")
        return user

    def change_password(
        self, user: User, data: ChangePasswordRequest, session_id: Optional[int], context: RequestContext
    ) -> int:
        if not verify_password(data.current_password, user.password_hash, self.settings.bcrypt_rounds):
            raise ValidationError("Current password is incorrect")
        problems = check_password_strength(data.new_password)
        if problems:
            raise ValidationError.from_fields([{"field": "newPassword", "message": p} for p in problems])

        with unit_of_work(self.db):
            user.password_hash = hash_password(data.new_password, self.settings.bcrypt_rounds)
            revoked = AuthService(self.db, self.settings, self.logger).revoke_user_sessions(
                user.id, "password_change", revoked_by=user.id, except_session_id=session_id
            )
            self.audit.record("password_change", "user", context, user_id=user.id, resource_id=user.id)
        return revoked

    def update_preferences(self, user: User, data: PreferencesUpdate) -> dict[str, Any]:
        with unit_of_work(self.db):
            preferences = user.merge_preferences(data.as_merge())
        return preferences

    def update_avatar(self, user: User, avatar_url: str) -> User:
        with unit_of_work(self.db):
            user.avatar = avatar_url
        return user

    def add_favorite(self, user: User, data: FavoriteCreate) -> list[dict[str, Any]]:
        with unit_of_work(self.db):
            user.add_favorite(data.destination_id, data.destination_type, data.notes)
        return user.favorite_destinations

    def remove_favorite(self, user: User, destination_id: str) -> tuple[list[dict[str, Any]], bool]:
        with unit_of_work(self.db):
            removed = user.remove_favorite(destination_id)
        return user.favorite_destinations, removed

    def get_stats(self, user_id: int) -> dict[str, Any]:
        user = self.get_user(user_id)
        counts = self.repo.activity_counts(self.db, user.id)
        return {
            "total_bookings": counts["bookings"],
            "total_reviews": counts["reviews"],
            "favorites_count": len(user.favorite_destinations or []),
            "member_since": user.created_at,
            "last_activity": user.last_login or user.updated_at,
            "planning_history": counts["plans"],
        }
