"""Review domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from ...models_review import Review
from ...schemas import APIModel, APIRequest, url_list
from ...utils.sanitization import sanitize_list, sanitize_string


class RatingInput(APIRequest):
    """Sub-ratings. `overall` is accepted but always recomputed."""

    overall: Optional[float] = None
    value: int = Field(ge=1, le=5)
    service: int = Field(ge=1, le=5)
    cleanliness: int = Field(ge=1, le=5)
    location: int = Field(ge=1, le=5)
    communication: int = Field(ge=1, le=5)

    def scores(self) -> dict[str, int]:
        return self.model_dump(exclude={"overall"})


class ReviewBase(APIRequest):
    @field_validator("comment", check_fields=False)
    @classmethod
    def clean_comment(cls, v):
        return sanitize_string(v)

    @field_validator("pros", "cons", check_fields=False)
    @classmethod
    def clean_items(cls, v):
        return sanitize_list(v)

    @field_validator("photos", check_fields=False)
    @classmethod
    def check_photos(cls, v):
        return url_list(v)


class ReviewCreate(ReviewBase):
    booking_id: int
    rating: RatingInput
    comment: str = Field(min_length=10, max_length=1000)
    photos: list[str] = Field(default_factory=list)
    pros: list[str] = Field(default_factory=list)
    cons: list[str] = Field(default_factory=list)
    would_recommend: bool = True
    is_anonymous: bool = False
    source: Literal["web", "mobile"] = "web"


class ReviewUpdate(ReviewBase):
    rating: Optional[RatingInput] = None
    comment: Optional[str] = Field(default=None, min_length=10, max_length=1000)
    photos: Optional[list[str]] = None
    pros: Optional[list[str]] = None
    cons: Optional[list[str]] = None
    would_recommend: Optional[bool] = None
    is_anonymous: Optional[bool] = None


class ReportCreate(APIRequest):
    reason: Literal["inappropriate_content", "spam", "fake_review", "offensive_language", "irrelevant", "other"]


class ModerationUpdate(APIRequest):
    status: Literal["pending", "approved", "rejected", "flagged"]
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_string(v)


class BusinessReplyCreate(APIRequest):
    message: str = Field(min_length=1, max_length=500)

    @field_validator("message")
    @classmethod
    def clean_message(cls, v):
        return sanitize_string(v)


class ReviewAuthor(APIModel):
    id: int
    name: str
    avatar: Optional[str] = None


class ReviewResponse(APIModel):
    """Public review. Reports and request metadata are never included."""

    id: int
    plan_id: int
    business_id: int
    booking_id: int
    user: Optional[ReviewAuthor] = None
    rating: dict[str, Any]
    comment: str
    photos: list[str]
    pros: list[str]
    cons: list[str]
    would_recommend: bool
    is_verified: bool
    is_anonymous: bool
    helpful_votes_count: int
    moderation_status: str
    business_response: Optional[dict[str, Any]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_review(cls, review: Review) -> dict[str, Any]:
        payload = cls.model_validate(review)
        if review.is_anonymous:
            payload.user = None
        return payload.dump()
