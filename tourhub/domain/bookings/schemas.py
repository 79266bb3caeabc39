"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator, model_validator

from ...schemas import APIModel, APIRequest, TimeSlot
from ...shared.validators import is_valid_time, validate_email, validate_phone
from ...utils.sanitization import sanitize_list, sanitize_string


class GuestCounts(APIRequest):
    adults: int = Field(ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)


class BookingTimeSlot(TimeSlot):
    @model_validator(mode="after")
    def check_format(self):
        if not (is_valid_time(self.start) and is_valid_time(self.end)):
            raise ValueError("Time must be in HH:MM format")
        return self


class EmergencyContact(APIRequest):
    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = None
    relationship: Optional[str] = Field(default=None, max_length=50)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)


class CustomerInfo(APIRequest):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = None
    phone: Optional[str] = None
    emergency_contact: Optional[EmergencyContact] = None
    dietary_restrictions: list[str] = Field(default_factory=list)
    medical_conditions: list[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def clean_name(cls, v):
        return sanitize_string(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return validate_email(v)

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v):
        return validate_phone(v)

    @field_validator("dietary_restrictions", "medical_conditions")
    @classmethod
    def clean_items(cls, v):
        return sanitize_list(v)


class BookingCreate(APIRequest):
    """Schema for requesting a booking"""

    plan_id: int
    date_requested: datetime
    time_slot: Optional[BookingTimeSlot] = None
    guests: GuestCounts
    special_requests: Optional[str] = Field(default=None, max_length=500)
    customer_info: Optional[CustomerInfo] = None
    payment_method: Optional[
        Literal["credit_card", "debit_card", "cash", "transfer", "paypal", "mercadopago"]
    ] = None
    source: Literal["web", "mobile", "admin", "api"] = "web"

    @field_validator("special_requests")
    @classmethod
    def clean_requests(cls, v):
        return sanitize_string(v)


class BookingUpdate(APIRequest):
    """Change the details of a booking. `version` guards against concurrent edits."""

    date_requested: Optional[datetime] = None
    time_slot: Optional[BookingTimeSlot] = None
    guests: Optional[GuestCounts] = None
    special_requests: Optional[str] = Field(default=None, max_length=500)
    version: Optional[int] = None

    @field_validator("special_requests")
    @classmethod
    def clean_requests(cls, v):
        return sanitize_string(v)


class BookingCancel(APIRequest):
    reason: Optional[str] = Field(default=None, max_length=500)

    @field_validator("reason")
    @classmethod
    def clean_reason(cls, v):
        return sanitize_string(v)


class BookingStatusUpdate(APIRequest):
    status: Literal["confirmed", "completed"]
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("notes")
    @classmethod
    def clean_notes(cls, v):
        return sanitize_string(v)


class CommunicationCreate(APIRequest):
    type: Literal["email", "sms", "whatsapp", "system"] = "system"
    message: str = Field(min_length=1, max_length=1000)

    @field_validator("message")
    @classmethod
    def clean_message(cls, v):
        return sanitize_string(v)


class BookingResponse(APIModel):
    id: int
    user_id: int
    plan_id: int
    business_id: int
    date_requested: datetime
    time_slot: Optional[dict[str, Any]] = None
    guests: dict[str, int]
    total_guests: int
    special_requests: Optional[str] = None
    pricing: dict[str, Any]
    status: str
    status_history: list[dict[str, Any]]
    confirmation_code: str
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    payment_info: Optional[dict[str, Any]] = None
    customer_info: dict[str, Any]
    communications: list[dict[str, Any]]
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None
