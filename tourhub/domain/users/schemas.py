"""User domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from ...schemas import APIModel, APIRequest
from ...shared.validators import validate_email, validate_phone, validate_url
from ...utils.sanitization import sanitize_string


class SocialLinks(APIRequest):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    website: Optional[str] = None

    @field_validator("facebook", "instagram", "twitter", "website")
    @classmethod
    def validate_link(cls, v):
        return validate_url(v)


class UserUpdate(APIRequest):
    """Schema for updating a user profile"""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, max_length=20)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    is_resident: Optional[bool] = None
    role: Optional[Literal["user", "business_owner", "admin", "super_admin"]] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    date_of_birth: Optional[datetime] = None
    avatar: Optional[str] = None
    social_links: Optional[SocialLinks] = None

    @field_validator("name", "city", "bio")
    @classmethod
    def clean_text(cls, v):
        return sanitize_string(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("avatar")
    @classmethod
    def check_avatar(cls, v):
        return validate_url(v)


class ChangePasswordRequest(APIRequest):
    current_password: str
    new_password: str = Field(min_length=8, max_length=72)


class NotificationToggles(APIRequest):
    email: Optional[bool] = None
    push: Optional[bool] = None
    sms: Optional[bool] = None


class PreferencesUpdate(APIRequest):
    language: Optional[Literal["es", "en"]] = None
    currency: Optional[Literal["COP", "USD"]] = None
    notifications: Optional[NotificationToggles] = None
    email_notifications: Optional[bool] = None
    push_notifications: Optional[bool] = None
    sms_notifications: Optional[bool] = None

    def as_merge(self) -> dict[str, Any]:
        """Supplied keys only, with camelCase toggle names"""
        return self.model_dump(by_alias=True, exclude_none=True)


class AvatarUpdate(APIRequest):
    avatar_url: str

    @field_validator("avatar_url")
    @classmethod
    def check_url(cls, v):
        return validate_url(v)


class FavoriteCreate(APIRequest):
    destination_id: str = Field(min_length=1, max_length=100)
    destination_type: str = Field(default="unknown", max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("destination_id", "destination_type", "notes")
    @classmethod
    def clean_text(cls, v):
        return sanitize_string(v)


class UserResponse(APIModel):
    """Full profile, returned to the user themself and to admins"""

    id: int
    name: str
    email: str
    role: str
    is_resident: bool
    city: str
    phone: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    is_email_verified: bool
    is_active: bool
    last_login: Optional[datetime] = None
    preferences: dict[str, Any]
    social_links: dict[str, Any]
    favorite_destinations: list[dict[str, Any]]
    created_at: datetime
    updated_at: Optional[datetime] = None


class PublicUserResponse(APIModel):
    id: int
    name: str
    role: str
    city: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    social_links: dict[str, Any]
    created_at: datetime


class UserStats(APIModel):
    total_bookings: int
    total_reviews: int
    favorites_count: int
    member_since: datetime
    last_activity: Optional[datetime] = None
    planning_history: int
