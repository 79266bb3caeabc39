import re
from typing import Any, Optional

import bleach

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Strip markup and control characters from free text.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    cleaned = bleach.clean(value, tags=[], attributes={}, strip=True)
    return _CONTROL_CHARS.sub("", cleaned).strip()


def sanitize_list(values: Optional[list[Any]]) -> Optional[list[Any]]:
    if values is None:
        return None
    return [sanitize_string(v) if isinstance(v, str) else v for v in values]


def sanitize_keys(data: Any, replacement: str = "_") -> Any:
    """
    Neutralise operator-style keys in free-form payloads.

    Keys starting with "$" or containing "." are rewritten so they can never be
    interpreted as query operators or nested paths downstream. String values are
    cleaned with sanitize_string().
    """
    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            safe_key = str(key)
            if safe_key.startswith("$"):
                safe_key = replacement + safe_key[1:]
            safe_key = safe_key.replace(".", replacement)
            sanitized[safe_key] = sanitize_keys(value, replacement)
        return sanitized
    if isinstance(data, list):
        return [sanitize_keys(item, replacement) for item in data]
    if isinstance(data, str):
        return sanitize_string(data)
    return data

