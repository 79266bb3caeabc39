"""Business domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator

from ...schemas import APIModel, APIRequest, Location, url_list
from ...shared.validators import is_valid_time, validate_email, validate_phone, validate_url
from ...utils.sanitization import sanitize_string

Weekday = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class ContactInfo(APIRequest):
    email: str
    phone: str
    website: Optional[str] = None
    whatsapp: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return validate_email(v)

    @field_validator("phone", "whatsapp")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("website")
    @classmethod
    def check_website(cls, v):
        return validate_url(v)


class LegalInfo(APIRequest):
    registration_number: str = Field(min_length=1, max_length=100)
    tax_id: str = Field(min_length=1, max_length=100)
    type: Literal["company", "sole_proprietorship", "partnership", "corporation"]


class DayHours(APIRequest):
    open: Optional[str] = None
    close: Optional[str] = None
    is_closed: bool = False

    @model_validator(mode="after")
    def check_times(self):
        if not self.is_closed:
            for value in (self.open, self.close):
                if not is_valid_time(value):
                    raise ValueError("Time must be in HH:MM format")
        return self


class BusinessSocialLinks(APIRequest):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    twitter: Optional[str] = None
    linkedin: Optional[str] = None

    @field_validator("facebook", "instagram", "twitter", "linkedin")
    @classmethod
    def check_link(cls, v):
        return validate_url(v)


class BankingInfo(APIRequest):
    account_number: str = Field(min_length=1)
    bank_name: str = Field(min_length=1)
    account_type: Literal["savings", "checking", "business"]
    account_holder: str = Field(min_length=1)


class VerificationDocuments(APIRequest):
    chamber_of_commerce: Optional[str] = None
    rut: Optional[str] = None
    other_documents: list[str] = Field(default_factory=list)

    @field_validator("chamber_of_commerce", "rut")
    @classmethod
    def check_document(cls, v):
        return validate_url(v)

    @field_validator("other_documents")
    @classmethod
    def check_others(cls, v):
        return url_list(v)


class BusinessBase(APIRequest):
    @field_validator("name", "description", check_fields=False)
    @classmethod
    def clean_text(cls, v):
        return sanitize_string(v)

    @field_validator("logo", check_fields=False)
    @classmethod
    def check_logo(cls, v):
        return validate_url(v)

    @field_validator("images", check_fields=False)
    @classmethod
    def check_images(cls, v):
        return url_list(v)


class BusinessCreate(BusinessBase):
    """Schema for registering a business"""

    name: str = Field(min_length=2, max_length=100)
    description: str = Field(min_length=20, max_length=1000)
    logo: Optional[str] = None
    images: list[str] = Field(default_factory=list)
    contact_info: ContactInfo
    location: Location
    legal_info: LegalInfo
    operating_hours: dict[Weekday, DayHours] = Field(default_factory=dict)
    social_links: BusinessSocialLinks = Field(default_factory=BusinessSocialLinks)
    banking_info: Optional[BankingInfo] = None
    verification_documents: VerificationDocuments = Field(default_factory=VerificationDocuments)


class BusinessUpdate(BusinessBase):
    """Schema for updating a business, legal identifiers stay fixed"""

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, min_length=20, max_length=1000)
    logo: Optional[str] = None
    images: Optional[list[str]] = None
    contact_info: Optional[ContactInfo] = None
    location: Optional[Location] = None
    operating_hours: Optional[dict[Weekday, DayHours]] = None
    social_links: Optional[BusinessSocialLinks] = None
    banking_info: Optional[BankingInfo] = None
    verification_documents: Optional[VerificationDocuments] = None


class BusinessResponse(APIModel):
    """Public business profile. Banking details are never exposed."""

    id: int
    name: str
    description: str
    logo: Optional[str] = None
    images: list[str]
    contact_info: dict[str, Any]
    location: dict[str, Any]
    legal_info: dict[str, Any]
    owner_id: int
    is_verified: bool
    verified_at: Optional[datetime] = None
    is_active: bool
    rating: dict[str, Any]
    stats: dict[str, Any]
    operating_hours: dict[str, Any]
    social_links: dict[str, Any]
    created_at: datetime
    updated_at: Optional[datetime] = None
