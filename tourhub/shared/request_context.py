"""Request metadata captured for audit entries and session records"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..security_utils import get_client_ip


@dataclass(frozen=True)
class RequestContext:
    method: str = "GET"
    endpoint: str = "/system"
    ip_address: str = "127.0.0.1"
    user_agent: Optional[str] = None

    @classmethod
    def from_request(cls, request: Request) -> "RequestContext":
        return cls(
            method=request.method,
            endpoint=request.url.path,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )


SYSTEM_CONTEXT = RequestContext()
