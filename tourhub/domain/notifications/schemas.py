"""Notification domain schemas"""

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import Field, field_validator

from ...schemas import APIModel, APIRequest
from ...utils.sanitization import sanitize_keys, sanitize_string


class DeliveryUpdate(APIRequest):
    channel: Literal["push", "email", "sms"]
    status: Literal["delivered", "failed"]
    error_message: Optional[str] = Field(default=None, max_length=500)


class AnnouncementCreate(APIRequest):
    title: str = Field(max_length=100)
    message: str = Field(max_length=500)
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    recipient_ids: Optional[list[int]] = None
    action_url: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    expires_at: Optional[datetime] = None

    @field_validator("title", "message")
    @classmethod
    def clean_text(cls, v):
        return sanitize_string(v)

    @field_validator("data")
    @classmethod
    def clean_data(cls, v):
        return sanitize_keys(v) if v is not None else v


class NotificationResponse(APIModel):
    id: int
    recipient_id: int
    sender_id: Optional[int] = None
    type: str
    title: str
    message: str
    data: dict[str, Any]
    channels: dict[str, Any]
    is_read: bool
    read_at: Optional[datetime] = None
    priority: str
    expires_at: Optional[datetime] = None
    action_url: Optional[str] = None
    category: str
    related_entity: Optional[dict[str, Any]] = None
    delivery_summary: dict[str, int]
    created_at: datetime
