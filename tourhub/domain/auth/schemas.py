"""Auth domain schemas"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from ...schemas import APIModel, APIRequest
from ...shared.validators import validate_email, validate_phone
from ...utils.sanitization import sanitize_string


class RegisterRequest(APIRequest):
    name: str = Field(min_length=2, max_length=100)
    email: str
    password: str = Field(min_length=8, max_length=72)
    city: Optional[str] = Field(default=None, min_length=2, max_length=100)
    is_resident: bool = False
    phone: Optional[str] = None
    role: Literal["user", "business_owner"] = "user"

    @field_validator("name", "city")
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


class LoginRequest(APIRequest):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RefreshRequest(APIRequest):
    refresh_token: str


class SessionResponse(APIModel):
    id: int
    device_info: dict[str, Any]
    ip_address: Optional[str] = None
    is_active: bool
    expires_at: datetime
    last_accessed_at: Optional[datetime] = None
    created_at: datetime
