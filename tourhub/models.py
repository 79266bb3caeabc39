import enum
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base
from .errors import AuthorizationError, ValidationError
from .shared.validators import is_valid_email, is_valid_phone, is_valid_url
from .utils.dates import utcnow


class UserRole(str, enum.Enum):
    USER = "user"
    BUSINESS_OWNER = "business_owner"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @classmethod
    def values(cls) -> list[str]:
        return [role.value for role in cls]


ADMIN_ROLES = (UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value)
SELF_ASSIGNABLE_ROLES = (UserRole.USER.value, UserRole.BUSINESS_OWNER.value)

LANGUAGES = ("es", "en")
CURRENCIES = ("COP", "USD")
SOCIAL_NETWORKS = ("facebook", "instagram", "twitter", "website")

REVOKE_REASONS = (
    "user_logout",
    "admin_revoke",
    "security_breach",
    "suspicious_activity",
    "password_change",
    "account_deactivation",
    "multiple_sessions",
    "expired",
)

AUDIT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")
AUDIT_SEVERITIES = ("info", "warning", "error", "critical")
AUDIT_CATEGORIES = ("auth", "crud", "security", "system", "business", "payment")
SENSITIVE_ACTIONS = (
    "login",
    "logout",
    "password_change",
    "password_reset",
    "email_change",
    "role_change",
    "user_delete",
    "business_verify",
    "payment_process",
    "data_export",
    "admin_access",
)


def default_preferences() -> dict[str, Any]:
    return {
        "language": "es",
        "currency": "COP",
        "notifications": {"email": True, "push": True, "sms": False},
    }


class FieldErrors:
    """Collects every violated rule of a write so they can be reported together."""

    def __init__(self):
        self.errors: list[dict[str, str]] = []

    def add(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def check(self, condition: bool, field: str, message: str) -> None:
        if not condition:
            self.add(field, message)

    def require(self, field: str, value: Any, label: Optional[str] = None) -> bool:
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add(field, f"{label or field} is required")
            return False
        return True

    def length(
        self,
        field: str,
        value: Optional[str],
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        label: Optional[str] = None,
    ) -> None:
        if value is None:
            return
        label = label or field
        if min_len is not None and len(value) < min_len:
            self.add(field, f"{label} must be at least {min_len} characters")
        if max_len is not None and len(value) > max_len:
            self.add(field, f"{label} cannot exceed {max_len} characters")

    def one_of(self, field: str, value: Any, choices: Iterable[str], label: Optional[str] = None) -> None:
        choices = tuple(choices)
        if value is not None and value not in choices:
            self.add(field, f"{label or field} must be one of: {', '.join(choices)}")

    def number(
        self,
        field: str,
        value: Any,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
        label: Optional[str] = None,
    ) -> None:
        if value is None:
            return
        label = label or field
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            self.add(field, f"{label} must be a number")
            return
        if minimum is not None and value < minimum:
            self.add(field, f"{label} must be at least {minimum}")
        if maximum is not None and value > maximum:
            self.add(field, f"{label} cannot exceed {maximum}")

    def url(self, field: str, value: Optional[str]) -> None:
        if value and not is_valid_url(value):
            self.add(field, "Invalid URL format")

    def raise_if_any(self, entity: str) -> None:
        if self.errors:
            raise ValidationError(f"{entity} validation failed", details={"errors": self.errors})


class EntityMixin:
    """Common columns plus the write-path hook run before every flush."""

    __entity_name__ = "Entity"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def before_save(self, is_new: bool) -> None:
        self.apply_derived(is_new)
        errors = FieldErrors()
        self.collect_errors(errors, is_new)
        errors.raise_if_any(self.__entity_name__)

    def apply_derived(self, is_new: bool) -> None:
        pass

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        pass

    def validate(self, is_new: bool = True) -> None:
        """Run the same checks as a flush without touching the database."""
        self.before_save(is_new)


class User(EntityMixin, Base):
    __tablename__ = "users"
    __entity_name__ = "User"

    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    is_resident = Column(Boolean, default=False, nullable=False)
    city = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    avatar = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    date_of_birth = Column(DateTime, nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
    preferences = Column(JSON, nullable=False)
    social_links = Column(JSON, nullable=False)
    favorite_destinations = Column(JSON, nullable=False)

    sessions = relationship(
        "AuthSession",
        back_populates="user",
        foreign_keys="AuthSession.user_id",
        cascade="all, delete-orphan",
    )

    def __init__(self, **kwargs):
        kwargs.setdefault("role", UserRole.USER.value)
        kwargs.setdefault("is_resident", False)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_email_verified", False)
        kwargs.setdefault("preferences", default_preferences())
        kwargs.setdefault("social_links", {})
        kwargs.setdefault("favorite_destinations", [])
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def apply_derived(self, is_new: bool) -> None:
        if self.email:
            self.email = self.email.strip().lower()
        if self.name:
            self.name = self.name.strip()

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        if errors.require("name", self.name, "Name"):
            errors.length("name", self.name, 2, 100, "Name")
        if errors.require("email", self.email, "Email"):
            errors.check(is_valid_email(self.email), "email", "Please enter a valid email")
        errors.require("password", self.password_hash, "Password")
        errors.one_of("role", self.role, UserRole.values(), "Role")
        errors.require("city", self.city, "City")
        if self.phone:
            errors.check(is_valid_phone(self.phone), "phone", "Please enter a valid phone number")
        errors.url("avatar", self.avatar)
        errors.length("bio", self.bio, max_len=500, label="Bio")
        if self.date_of_birth is not None:
            errors.check(self.date_of_birth < utcnow(), "dateOfBirth", "Date of birth must be in the past")

        prefs = self.preferences or {}
        errors.one_of("preferences.language", prefs.get("language"), LANGUAGES, "Language")
        errors.one_of("preferences.currency", prefs.get("currency"), CURRENCIES, "Currency")
        for channel, enabled in (prefs.get("notifications") or {}).items():
            errors.check(
                isinstance(enabled, bool),
                f"preferences.notifications.{channel}",
                "Notification toggles must be true or false",
            )
        for network, link in (self.social_links or {}).items():
            errors.one_of(f"socialLinks.{network}", network, SOCIAL_NETWORKS, "Social network")
            errors.url(f"socialLinks.{network}", link)

        seen = set()
        for favorite in self.favorite_destinations or []:
            destination_id = favorite.get("destinationId")
            if destination_id in seen:
                errors.add("favoriteDestinations", f"Duplicate favorite destination: {destination_id}")
            seen.add(destination_id)

    # --- favorites -------------------------------------------------------

    def has_favorite(self, destination_id: str) -> bool:
        return any(f.get("destinationId") == str(destination_id) for f in self.favorite_destinations or [])

    def add_favorite(
        self,
        destination_id: str,
        destination_type: str = "unknown",
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict[str, Any]:
        if self.has_favorite(destination_id):
            raise ValidationError("Destination already in favorites", details={"destinationId": str(destination_id)})
        entry = {
            "destinationId": str(destination_id),
            "destinationType": destination_type or "unknown",
            "notes": notes,
            "addedAt": (now or utcnow()).isoformat(),
        }
        # JSON columns only track reassignment
        self.favorite_destinations = [*(self.favorite_destinations or []), entry]
        return entry

    def remove_favorite(self, destination_id: str) -> bool:
        current = self.favorite_destinations or []
        remaining = [f for f in current if f.get("destinationId") != str(destination_id)]
        if len(remaining) == len(current):
            return False
        self.favorite_destinations = remaining
        return True

    # --- preferences -----------------------------------------------------

    def merge_preferences(self, updates: dict[str, Any]) -> dict[str, Any]:
        """Partial merge: only supplied keys overwrite, nested toggles included."""
        merged = default_preferences()
        current = self.preferences or {}
        merged.update({k: v for k, v in current.items() if k != "notifications"})
        merged["notifications"].update(current.get("notifications") or {})

        for key in ("language", "currency"):
            if updates.get(key) is not None:
                merged[key] = updates[key]

        toggles = dict(updates.get("notifications") or {})
        for flat_key, channel in (
            ("emailNotifications", "email"),
            ("pushNotifications", "push"),
            ("smsNotifications", "sms"),
        ):
            if updates.get(flat_key) is not None:
                toggles[channel] = updates[flat_key]
        for channel, enabled in toggles.items():
            if enabled is not None:
                merged["notifications"][channel] = enabled

        self.preferences = merged
        return merged

    def soft_delete(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        millis = int(now.timestamp() * 1000)
        self.is_active = False
        self.deleted_at = now
        self.email = f"deleted_{millis}_{self.email}"


class AuthSession(EntityMixin, Base):
    """A login session backing a refresh token."""

    __tablename__ = "sessions"
    __entity_name__ = "Session"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    refresh_token_hash = Column(String(64), unique=True, index=True, nullable=False)
    device_info = Column(JSON, nullable=False)
    ip_address = Column(String(64), nullable=True)
    location = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    last_accessed_at = Column(DateTime, nullable=True)
    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    revoked_reason = Column(String(40), nullable=True)

    user = relationship("User", back_populates="sessions", foreign_keys=[user_id])

    def __init__(self, **kwargs):
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("device_info", {})
        kwargs.setdefault("created_at", utcnow())
        kwargs.setdefault("last_accessed_at", kwargs["created_at"])
        super().__init__(**kwargs)

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        errors.require("refreshTokenHash", self.refresh_token_hash, "Refresh token")
        errors.require("expiresAt", self.expires_at, "Expiry")
        errors.one_of("revokedReason", self.revoked_reason, REVOKE_REASONS, "Revoke reason")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())

    def is_valid(self, now: Optional[datetime] = None) -> bool:
        return bool(self.is_active) and not self.is_expired(now)

    def revoke(self, reason: str, revoked_by: Optional[int] = None, now: Optional[datetime] = None) -> None:
        if reason not in REVOKE_REASONS:
            raise ValidationError(f"Invalid revoke reason: {reason}")
        if not self.is_active:
            return
        self.is_active = False
        self.revoked_at = now or utcnow()
        self.revoked_by = revoked_by
        self.revoked_reason = reason

    def touch(self, now: Optional[datetime] = None) -> None:
        self.last_accessed_at = now or utcnow()


def category_for_action(action: str) -> str:
    action_lower = (action or "").lower()
    if any(word in action_lower for word in ("login", "logout", "auth", "token", "password")):
        return "auth"
    if "payment" in action_lower or "billing" in action_lower:
        return "payment"
    if any(word in action_lower for word in ("security", "suspicious", "blocked")):
        return "security"
    if "business" in action_lower or "verify" in action_lower:
        return "business"
    if any(word in action_lower for word in ("create", "update", "delete", "cancel", "confirm", "complete")):
        return "crud"
    return "system"


class AuditLog(EntityMixin, Base):
    """Append-only record of an action. Rows are never updated."""

    __tablename__ = "audit_logs"
    __entity_name__ = "AuditLog"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    resource = Column(String(100), nullable=False, index=True)
    resource_id = Column(String(64), nullable=True)
    method = Column(String(10), nullable=False)
    endpoint = Column(String(500), nullable=False)
    status_code = Column(Integer, nullable=False)
    user_agent = Column(String(500), nullable=True)
    ip_address = Column(String(64), nullable=False)
    changes = Column(JSON, nullable=True)
    details = Column(JSON, nullable=False)
    severity = Column(String(10), default="info", nullable=False, index=True)
    category = Column(String(20), nullable=False, index=True)

    def __init__(self, **kwargs):
        kwargs.setdefault("severity", "info")
        kwargs.setdefault("details", {})
        kwargs.setdefault("created_at", utcnow())
        if not kwargs.get("category"):
            kwargs["category"] = category_for_action(kwargs.get("action", ""))
        super().__init__(**kwargs)

    @property
    def is_sensitive(self) -> bool:
        return self.action in SENSITIVE_ACTIONS

    def before_save(self, is_new: bool) -> None:
        if not is_new:
            raise AuthorizationError("Audit log entries are immutable")
        super().before_save(is_new)

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        errors.require("action", self.action, "Action")
        errors.require("resource", self.resource, "Resource")
        errors.one_of("method", self.method, AUDIT_METHODS, "Method")
        errors.require("endpoint", self.endpoint, "Endpoint")
        errors.number("statusCode", self.status_code, 100, 599, "Status code")
        errors.require("ipAddress", self.ip_address, "IP address")
        errors.one_of("severity", self.severity, AUDIT_SEVERITIES, "Severity")
        errors.one_of("category", self.category, AUDIT_CATEGORIES, "Category")

    def formatted(self) -> str:
        actor = f"User {self.user_id}" if self.user_id else "System"
        timestamp = self.created_at.isoformat() if self.created_at else ""
        return f"[{timestamp}] {actor} {self.action} {self.resource} - {self.status_code} ({self.severity.upper()})"
