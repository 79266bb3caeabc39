"""Application error taxonomy.

Every handled failure carries an HTTP status, a stable machine-readable code and
a human message. Operational errors are expected and returned verbatim; anything
non-operational is logged in full and surfaced as a generic internal error.
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    is_operational = True

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        is_operational: Optional[bool] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if code is not None:
            self.code = code
        if is_operational is not None:
            self.is_operational = is_operational
        self.details = details or {}
        self.headers: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}, {self.message!r})"


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"

    @classmethod
    def from_fields(cls, errors: list[dict[str, str]], message: str = "Validation failed"):
        return cls(message, details={"errors": errors})


class AuthenticationError(AppError):
    status_code = 401
    code = "AUTHENTICATION_ERROR"

    def __init__(self, message: str = "Authentication failed", **kwargs):
        super().__init__(message, **kwargs)


class AuthorizationError(AppError):
    status_code = 403
    code = "AUTHORIZATION_ERROR"

    def __init__(self, message: str = "Access denied", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND_ERROR"

    def __init__(self, resource: str = "Resource", **kwargs):
        super().__init__(f"{resource} not found", **kwargs)


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT_ERROR"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(self, message: str = "Too many requests, please try again later", retry_after: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.details.setdefault("retryAfter", retry_after)
        self.headers["Retry-After"] = str(retry_after)


class DatabaseError(AppError):
    status_code = 500
    code = "DATABASE_ERROR"
    is_operational = False

    def __init__(self, message: str = "Database operation failed", **kwargs):
        super().__init__(message, **kwargs)


class ExternalServiceError(AppError):
    status_code = 503
    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, service: str, message: Optional[str] = None, **kwargs):
        super().__init__(message or f"{service} service unavailable", **kwargs)
        self.details.setdefault("service", service)
