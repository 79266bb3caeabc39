"""Plan domain schemas - Pydantic models for validation"""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from ...schemas import APIModel, APIRequest, Location, TimeSlot, url_list
from ...utils.sanitization import sanitize_list, sanitize_string

PlanCategory = Literal["adventure", "cultural", "gastronomic", "ecotourism", "wellness", "family", "business"]
Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class Price(APIRequest):
    amount: float = Field(ge=0)
    currency: Literal["COP", "USD"] = "COP"
    includes: list[str] = Field(default_factory=list)
    excludes: list[str] = Field(default_factory=list)

    @field_validator("includes", "excludes")
    @classmethod
    def clean_items(cls, v):
        return sanitize_list(v)


class Duration(APIRequest):
    value: float = Field(ge=1)
    unit: Literal["hours", "days", "weeks"]


class Capacity(APIRequest):
    min: int = Field(ge=1)
    max: int = Field(ge=1)


class AgeRestriction(APIRequest):
    min: Optional[int] = Field(default=None, ge=0, le=100)
    max: Optional[int] = Field(default=None, ge=0, le=150)


class Schedule(APIRequest):
    availability: list[Weekday] = Field(default_factory=list)
    time_slots: list[TimeSlot] = Field(default_factory=list)
    blackout_dates: list[date] = Field(default_factory=list)


class Seo(APIRequest):
    meta_title: Optional[str] = Field(default=None, max_length=60)
    meta_description: Optional[str] = Field(default=None, max_length=160)
    keywords: list[str] = Field(default_factory=list)


class PlanBase(APIRequest):
    @field_validator("title", "description", "short_description", "cancellation_policy", check_fields=False)
    @classmethod
    def clean_text(cls, v):
        return sanitize_string(v)

    @field_validator("tags", "requirements", "what_to_bring", check_fields=False)
    @classmethod
    def clean_items(cls, v):
        return sanitize_list(v)

    @field_validator("images", check_fields=False)
    @classmethod
    def check_images(cls, v):
        return url_list(v)


class PlanCreate(PlanBase):
    """Schema for creating a plan"""

    title: str = Field(min_length=5, max_length=100)
    description: str = Field(min_length=50, max_length=2000)
    short_description: str = Field(min_length=20, max_length=200)
    category: PlanCategory
    tags: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    price: Price
    duration: Duration
    location: Location
    capacity: Capacity
    difficulty: Literal["easy", "moderate", "challenging", "expert"] = "easy"
    languages: list[Literal["es", "en", "fr", "pt"]] = Field(default_factory=lambda: ["es"])
    age_restriction: AgeRestriction = Field(default_factory=AgeRestriction)
    requirements: list[str] = Field(default_factory=list)
    what_to_bring: list[str] = Field(default_factory=list)
    cancellation_policy: str = Field(min_length=1, max_length=1000)
    business_id: Optional[int] = None
    schedule: Schedule = Field(default_factory=Schedule)
    seo: Seo = Field(default_factory=Seo)


class PlanUpdate(PlanBase):
    """Schema for updating a plan, every field optional"""

    title: Optional[str] = Field(default=None, min_length=5, max_length=100)
    description: Optional[str] = Field(default=None, min_length=50, max_length=2000)
    short_description: Optional[str] = Field(default=None, min_length=20, max_length=200)
    category: Optional[PlanCategory] = None
    tags: Optional[list[str]] = None
    images: Optional[list[str]] = None
    price: Optional[Price] = None
    duration: Optional[Duration] = None
    location: Optional[Location] = None
    capacity: Optional[Capacity] = None
    difficulty: Optional[Literal["easy", "moderate", "challenging", "expert"]] = None
    languages: Optional[list[Literal["es", "en", "fr", "pt"]]] = None
    age_restriction: Optional[AgeRestriction] = None
    requirements: Optional[list[str]] = None
    what_to_bring: Optional[list[str]] = None
    cancellation_policy: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    is_active: Optional[bool] = None
    schedule: Optional[Schedule] = None
    seo: Optional[Seo] = None


class PlanResponse(APIModel):
    id: int
    title: str
    description: str
    short_description: str
    category: str
    tags: list[str]
    images: list[str]
    price: dict[str, Any]
    duration: dict[str, Any]
    location: dict[str, Any]
    capacity: dict[str, Any]
    difficulty: str
    languages: list[str]
    age_restriction: dict[str, Any]
    requirements: list[str]
    what_to_bring: list[str]
    cancellation_policy: str
    is_active: bool
    is_verified: bool
    created_by: int
    business_id: Optional[int] = None
    schedule: dict[str, Any]
    rating: dict[str, Any]
    stats: dict[str, Any]
    seo: dict[str, Any]
    slug: str
    created_at: datetime
    updated_at: Optional[datetime] = None


class PlanSummary(APIModel):
    """Compact listing row"""

    id: int
    title: str
    short_description: str
    category: str
    images: list[str]
    price: dict[str, Any]
    duration: dict[str, Any]
    city: Optional[str] = None
    difficulty: str
    rating: dict[str, Any]
    slug: str
    business_id: Optional[int] = None
