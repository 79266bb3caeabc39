import re
import secrets
from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    inspect,
)
from sqlalchemy.orm import relationship

from .database import Base
from .models import CURRENCIES, EntityMixin, FieldErrors
from .shared.validators import is_valid_coordinates, is_valid_email, is_valid_phone, is_valid_time
from .utils.dates import utcnow

PLAN_CATEGORIES = (
    "adventure",
    "cultural",
    "gastronomic",
    "ecotourism",
    "wellness",
    "family",
    "business",
)
DURATION_UNITS = ("hours", "days", "weeks")
DIFFICULTIES = ("easy", "moderate", "challenging", "expert")
PLAN_LANGUAGES = ("es", "en", "fr", "pt")
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
BUSINESS_TYPES = ("company", "sole_proprietorship", "partnership", "corporation")
BUSINESS_SOCIAL_NETWORKS = ("facebook", "instagram", "twitter", "linkedin")
ACCOUNT_TYPES = ("savings", "checking", "business")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"
_SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


def random_base36(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", (value or "").lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug).strip("-")


def _parse_day(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            return None
    return None


def _check_location(errors: FieldErrors, location: dict, require_address: bool = True) -> None:
    errors.require("location.city", location.get("city"), "City")
    if require_address:
        errors.require("location.address", location.get("address"), "Address")
    coordinates = location.get("coordinates")
    if coordinates is not None:
        errors.check(
            is_valid_coordinates(coordinates.get("lat"), coordinates.get("lng")),
            "location.coordinates",
            "Invalid coordinates",
        )


class Plan(EntityMixin, Base):
    __tablename__ = "plans"
    __entity_name__ = "Plan"

    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    short_description = Column(String(200), nullable=False)
    category = Column(String(20), nullable=False, index=True)
    tags = Column(JSON, nullable=False)
    images = Column(JSON, nullable=False)
    price = Column(JSON, nullable=False)
    duration = Column(JSON, nullable=False)
    location = Column(JSON, nullable=False)
    city = Column(String(100), nullable=True, index=True)
    capacity = Column(JSON, nullable=False)
    difficulty = Column(String(20), default="easy", nullable=False)
    languages = Column(JSON, nullable=False)
    age_restriction = Column(JSON, nullable=False)
    requirements = Column(JSON, nullable=False)
    what_to_bring = Column(JSON, nullable=False)
    cancellation_policy = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    business_id = Column(Integer, ForeignKey("businesses.id"), nullable=True, index=True)
    schedule = Column(JSON, nullable=False)
    rating = Column(JSON, nullable=False)
    stats = Column(JSON, nullable=False)
    seo = Column(JSON, nullable=False)
    slug = Column(String(140), unique=True, index=True, nullable=False)

    creator = relationship("User", foreign_keys=[created_by])
    business = relationship("Business", back_populates="plans")

    def __init__(self, **kwargs):
        kwargs.setdefault("tags", [])
        kwargs.setdefault("images", [])
        kwargs.setdefault("difficulty", "easy")
        kwargs.setdefault("languages", ["es"])
        kwargs.setdefault("age_restriction", {})
        kwargs.setdefault("requirements", [])
        kwargs.setdefault("what_to_bring", [])
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("is_verified", False)
        kwargs.setdefault("schedule", {"availability": [], "timeSlots": [], "blackoutDates": []})
        kwargs.setdefault("rating", {"average": 0, "count": 0})
        kwargs.setdefault("stats", {"views": 0, "bookings": 0, "favorites": 0})
        kwargs.setdefault("seo", {})
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    def generate_slug(self) -> str:
        base = slugify(self.title)[:120] or "plan"
        self.slug = f"{base}-{random_base36(6)}"
        return self.slug

    def _title_changed(self) -> bool:
        return inspect(self).attrs.title.history.has_changes()

    def apply_derived(self, is_new: bool) -> None:
        if self.title:
            self.title = self.title.strip()
        self.tags = [t.strip().lower() for t in self.tags or [] if t and t.strip()]
        if not self.slug or (not is_new and self._title_changed()):
            self.generate_slug()
        price = dict(self.price or {})
        price.setdefault("currency", "COP")
        price.setdefault("includes", [])
        price.setdefault("excludes", [])
        self.price = price
        self.city = (self.location or {}).get("city")

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        if errors.require("title", self.title, "Plan title"):
            errors.length("title", self.title, 5, 100, "Title")
        if errors.require("description", self.description, "Plan description"):
            errors.length("description", self.description, 50, 2000, "Description")
        if errors.require("shortDescription", self.short_description, "Short description"):
            errors.length("shortDescription", self.short_description, 20, 200, "Short description")
        if errors.require("category", self.category, "Plan category"):
            errors.one_of("category", self.category, PLAN_CATEGORIES, "Category")
        for index, image in enumerate(self.images or []):
            errors.url(f"images.{index}", image)

        price = self.price or {}
        if errors.require("price.amount", price.get("amount"), "Price amount"):
            errors.number("price.amount", price.get("amount"), 0, label="Price")
        errors.one_of("price.currency", price.get("currency"), CURRENCIES, "Currency")

        duration = self.duration or {}
        if errors.require("duration.value", duration.get("value"), "Duration value"):
            errors.number("duration.value", duration.get("value"), 1, label="Duration")
        if errors.require("duration.unit", duration.get("unit"), "Duration unit"):
            errors.one_of("duration.unit", duration.get("unit"), DURATION_UNITS, "Duration unit")

        _check_location(errors, self.location or {})

        capacity = self.capacity or {}
        cap_min, cap_max = capacity.get("min"), capacity.get("max")
        if errors.require("capacity.min", cap_min, "Minimum capacity"):
            errors.number("capacity.min", cap_min, 1, label="Minimum capacity")
        if errors.require("capacity.max", cap_max, "Maximum capacity"):
            if isinstance(cap_min, (int, float)) and isinstance(cap_max, (int, float)):
                errors.check(
                    cap_max >= cap_min,
                    "capacity.max",
                    "Maximum capacity must be greater than or equal to minimum capacity",
                )

        errors.one_of("difficulty", self.difficulty, DIFFICULTIES, "Difficulty")
        for language in self.languages or []:
            errors.one_of("languages", language, PLAN_LANGUAGES, "Language")

        ages = self.age_restriction or {}
        errors.number("ageRestriction.min", ages.get("min"), 0, 100, "Minimum age")
        errors.number("ageRestriction.max", ages.get("max"), 0, 150, "Maximum age")

        if errors.require("cancellationPolicy", self.cancellation_policy, "Cancellation policy"):
            errors.length("cancellationPolicy", self.cancellation_policy, max_len=1000, label="Cancellation policy")
        errors.require("createdBy", self.created_by, "Plan creator")

        schedule = self.schedule or {}
        for day in schedule.get("availability") or []:
            errors.one_of("schedule.availability", day, WEEKDAYS, "Weekday")
        for slot in schedule.get("timeSlots") or []:
            for edge in ("start", "end"):
                errors.check(
                    is_valid_time(slot.get(edge)), f"schedule.timeSlots.{edge}", "Time must be in HH:MM format"
                )
        for blackout in schedule.get("blackoutDates") or []:
            errors.check(_parse_day(blackout) is not None, "schedule.blackoutDates", "Invalid blackout date")

        rating = self.rating or {}
        errors.number("rating.average", rating.get("average"), 0, 5, "Rating")
        errors.number("rating.count", rating.get("count"), 0, label="Rating count")
        for key, value in (self.stats or {}).items():
            errors.number(f"stats.{key}", value, 0, label=key.capitalize())

        seo = self.seo or {}
        errors.length("seo.metaTitle", seo.get("metaTitle"), max_len=60, label="Meta title")
        errors.length("seo.metaDescription", seo.get("metaDescription"), max_len=160, label="Meta description")
        errors.check(
            bool(self.slug and _SLUG_PATTERN.match(self.slug)),
            "seo.slug",
            "Slug can only contain lowercase letters, numbers, and hyphens",
        )

    # --- schedule --------------------------------------------------------

    def is_blackout(self, day: datetime) -> bool:
        target = _parse_day(day)
        return any(_parse_day(d) == target for d in (self.schedule or {}).get("blackoutDates") or [])

    def is_available_on(self, day: datetime) -> bool:
        availability = (self.schedule or {}).get("availability") or []
        if availability and WEEKDAYS[day.weekday()] not in availability:
            return False
        return not self.is_blackout(day)

    # --- counters --------------------------------------------------------

    def bump_stat(self, key: str, delta: int = 1) -> None:
        stats = dict(self.stats or {})
        stats[key] = max(0, int(stats.get(key, 0)) + delta)
        self.stats = stats

    def set_rating(self, average: float, count: int) -> None:
        self.rating = {"average": average, "count": count}


class Business(EntityMixin, Base):
    __tablename__ = "businesses"
    __entity_name__ = "Business"

    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    logo = Column(String(500), nullable=True)
    images = Column(JSON, nullable=False)
    contact_info = Column(JSON, nullable=False)
    location = Column(JSON, nullable=False)
    legal_type = Column(String(30), nullable=False)
    registration_number = Column(String(100), unique=True, nullable=False)
    tax_id = Column(String(100), unique=True, nullable=False)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False, index=True)
    verified_at = Column(DateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    verification_documents = Column(JSON, nullable=False)
    rating = Column(JSON, nullable=False)
    stats = Column(JSON, nullable=False)
    operating_hours = Column(JSON, nullable=False)
    social_links = Column(JSON, nullable=False)
    banking_info = Column(JSON, nullable=True)

    owner = relationship("User", foreign_keys=[owner_id])
    plans = relationship("Plan", back_populates="business")

    def __init__(self, **kwargs):
        kwargs.setdefault("images", [])
        kwargs.setdefault("is_verified", False)
        kwargs.setdefault("is_active", True)
        kwargs.setdefault("verification_documents", {"otherDocuments": []})
        kwargs.setdefault("rating", {"average": 0, "count": 0})
        kwargs.setdefault("stats", {"totalPlans": 0, "totalBookings": 0, "totalRevenue": 0})
        kwargs.setdefault("operating_hours", {})
        kwargs.setdefault("social_links", {})
        kwargs.setdefault("created_at", utcnow())
        super().__init__(**kwargs)

    @property
    def legal_info(self) -> dict[str, Any]:
        return {
            "registrationNumber": self.registration_number,
            "taxId": self.tax_id,
            "type": self.legal_type,
        }

    def apply_derived(self, is_new: bool) -> None:
        if self.name:
            self.name = self.name.strip()
        contact = dict(self.contact_info or {})
        if contact.get("email"):
            contact["email"] = contact["email"].strip().lower()
            self.contact_info = contact

    def collect_errors(self, errors: FieldErrors, is_new: bool) -> None:
        if errors.require("name", self.name, "Business name"):
            errors.length("name", self.name, 2, 100, "Business name")
        if errors.require("description", self.description, "Business description"):
            errors.length("description", self.description, 20, 1000, "Description")
        errors.url("logo", self.logo)
        for index, image in enumerate(self.images or []):
            errors.url(f"images.{index}", image)

        contact = self.contact_info or {}
        if errors.require("contactInfo.email", contact.get("email"), "Contact email"):
            errors.check(is_valid_email(contact.get("email")), "contactInfo.email", "Please enter a valid email")
        if errors.require("contactInfo.phone", contact.get("phone"), "Contact phone"):
            errors.check(is_valid_phone(contact.get("phone")), "contactInfo.phone", "Please enter a valid phone number")
        errors.url("contactInfo.website", contact.get("website"))
        if contact.get("whatsapp"):
            errors.check(is_valid_phone(contact["whatsapp"]), "contactInfo.whatsapp", "Please enter a valid phone number")

        _check_location(errors, self.location or {})

        errors.require("legalInfo.registrationNumber", self.registration_number, "Registration number")
        errors.require("legalInfo.taxId", self.tax_id, "Tax ID")
        if errors.require("legalInfo.type", self.legal_type, "Business type"):
            errors.one_of("legalInfo.type", self.legal_type, BUSINESS_TYPES, "Business type")
        errors.require("owner", self.owner_id, "Business owner")

        for day, hours in (self.operating_hours or {}).items():
            errors.one_of("operatingHours", day, WEEKDAYS, "Weekday")
            if hours and not hours.get("isClosed"):
                for edge in ("open", "close"):
                    errors.check(
                        is_valid_time(hours.get(edge)),
                        f"operatingHours.{day}.{edge}",
                        "Time must be in HH:MM format",
                    )
        for network, link in (self.social_links or {}).items():
            errors.one_of(f"socialLinks.{network}", network, BUSINESS_SOCIAL_NETWORKS, "Social network")
            errors.url(f"socialLinks.{network}", link)

        banking = self.banking_info
        if banking:
            for key in ("accountNumber", "bankName", "accountHolder"):
                errors.require(f"bankingInfo.{key}", banking.get(key), key)
            errors.one_of("bankingInfo.accountType", banking.get("accountType"), ACCOUNT_TYPES, "Account type")

        rating = self.rating or {}
        errors.number("rating.average", rating.get("average"), 0, 5, "Rating")
        for key, value in (self.stats or {}).items():
            errors.number(f"stats.{key}", value, 0, label=key)

    def verify(self, admin_id: int, now: Optional[datetime] = None) -> None:
        self.is_verified = True
        self.verified_at = now or utcnow()
        self.verified_by = admin_id

    def bump_stat(self, key: str, delta: float = 1) -> None:
        stats = dict(self.stats or {})
        stats[key] = max(0, stats.get(key, 0) + delta)
        self.stats = stats

    def set_rating(self, average: float, count: int) -> None:
        self.rating = {"average": average, "count": count}
