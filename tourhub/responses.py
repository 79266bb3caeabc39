"""Response envelope shared by every endpoint."""

import math
from typing import Any, Optional


def envelope(message: str, data: Any = None, **extra) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def error_envelope(message: str, code: str, details: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code}
    if details:
        error["details"] = details
    return {"success": False, "message": message, "error": error}


def paginate(page: int, limit: int, total: int, total_key: str = "totalItems") -> dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        total_key: total,
        "limit": limit,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }
