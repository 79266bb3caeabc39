"""
Request-level security middleware: body size limits, suspicious request logging and
access logging.
"""

import logging
import re
import time
from typing import Callable
from urllib.parse import unquote

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .responses import error_envelope
from .security_utils import get_client_ip

logger = logging.getLogger(__name__)

SUSPICIOUS_PATTERNS = [
    re.compile(r"\.\./"),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"union.*select", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
]


def is_suspicious(value: str) -> bool:
    return any(pattern.search(value) for pattern in SUSPICIOUS_PATTERNS)


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose declared Content-Length exceeds max_bytes with 413.
    """

    def __init__(self, app, max_bytes: int):
        super().__init__(app)
        self.max_bytes = max_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                too_large = int(content_length) > self.max_bytes
            except ValueError:
                too_large = False
            if too_large:
                logger.warning(
                    f"🚫 Payload too large from {get_client_ip(request)}: {content_length} bytes on {request.url.path}"
                )
                return JSONResponse(
                    status_code=413,
                    content=error_envelope("Request entity too large", "PAYLOAD_TOO_LARGE"),
                )
        return await call_next(request)


class SuspiciousRequestMiddleware(BaseHTTPMiddleware):
    """
    Logs requests whose URL or user agent match common attack patterns.
    The request still proceeds; validation and sanitisation happen downstream.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        target = unquote(str(request.url))
        user_agent = request.headers.get("user-agent", "")
        if is_suspicious(target) or is_suspicious(user_agent):
            logger.warning(
                f"⚠️ Suspicious request detected: {request.method} {target} "
                f"from {get_client_ip(request)} (UA: {user_agent[:200]})"
            )
            request.state.suspicious = True
        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, skip_paths: tuple[str, ...] = ("/health",)):
        super().__init__(app)
        self.skip_paths = skip_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
            raise
        if request.url.path not in self.skip_paths:
            duration_ms = (time.time() - start) * 1000
            logger.info(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.1f}ms)")
        return response
