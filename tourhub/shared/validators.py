"""Shared validation utilities"""

import re
from typing import Optional

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
URL_PATTERN = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: Optional[str]) -> bool:
    return bool(phone) and bool(PHONE_PATTERN.match(phone))


def is_valid_url(url: Optional[str]) -> bool:
    return bool(url) and bool(URL_PATTERN.match(url))


def is_valid_time(value: Optional[str]) -> bool:
    """24h HH:MM"""
    return bool(value) and bool(TIME_PATTERN.match(value))


def is_valid_coordinates(lat, lng) -> bool:
    try:
        return -90 <= float(lat) <= 90 and -180 <= float(lng) <= 180
    except (TypeError, ValueError):
        return False


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()
    if not is_valid_email(email):
        raise ValueError("Invalid email format")
    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate an international phone number (digits, spaces, dashes, parentheses,
    optional leading +).

    Raises:
        ValueError: If phone number is invalid
    """
    if not phone:
        return phone

    phone = phone.strip()
    if not is_valid_phone(phone):
        raise ValueError("Please enter a valid phone number")
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 7 or len(digits) > 15:
        raise ValueError("Phone number must have between 7 and 15 digits")
    return phone


def validate_url(url: Optional[str]) -> Optional[str]:
    if not url:
        return url
    url = url.strip()
    if not is_valid_url(url):
        raise ValueError("Invalid URL format")
    return url
