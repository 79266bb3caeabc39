import os
import warnings
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

INSECURE_SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    """Runtime configuration, built once and handed to create_app()."""

    environment: str = "development"
    app_name: str = "TourHub API"

    # Database
    database_url: str = "sqlite:///./tourhub.db"
    db_pool_size: int = 20
    db_max_overflow: int = 30
    db_pool_timeout: int = 30
    db_pool_recycle: int = 300
    db_log_slow_queries: bool = True
    db_slow_query_threshold: float = 1.0
    db_create_tables: bool = True

    # Auth
    secret_key: str = INSECURE_SECRET_KEY
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 15
    refresh_token_expire_days: int = 7
    bcrypt_rounds: int = 12

    # HTTP
    api_prefix: str = "/api/v1"
    allowed_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )
    security_headers_enabled: bool = True
    max_request_bytes: int = 10 * 1024 * 1024

    # Rate limiting: 100 req / 15 min, 5 auth req / 15 min
    rate_limit_enabled: bool = True
    rate_limit_window_seconds: int = 900
    rate_limit_max_requests: int = 100
    auth_rate_limit_window_seconds: int = 900
    auth_rate_limit_max_requests: int = 5
    redis_url: Optional[str] = None

    # Domain defaults
    default_city: str = "Cartagena"
    default_currency: str = "COP"
    booking_tax_rate: float = 0.19
    booking_service_fee: float = 0.0
    notification_ttl_days: int = 30
    audit_log_retention_days: int = 365
    revoked_session_retention_days: int = 30

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Settings":
        """Read settings from the process environment (and a .env file when present)."""
        env_path = env_file or Path(__file__).resolve().parent.parent / ".env"
        load_dotenv(dotenv_path=env_path)

        secret_key = os.getenv("SECRET_KEY")
        if not secret_key:
            warnings.warn(
                "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION",
                RuntimeWarning,
                stacklevel=2,
            )
            secret_key = INSECURE_SECRET_KEY

        settings = cls(
            environment=os.getenv("ENVIRONMENT", "development"),
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            db_pool_size=int(os.getenv("DB_POOL_SIZE", "20")),
            db_max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "30")),
            db_pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
            db_pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "300")),
            db_log_slow_queries=_env_bool("DB_LOG_SLOW_QUERIES", "true"),
            db_slow_query_threshold=float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0")),
            db_create_tables=_env_bool("DB_CREATE_TABLES", "true"),
            secret_key=secret_key,
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")),
            refresh_token_expire_days=int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7")),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", "12")),
            api_prefix=os.getenv("API_PREFIX", "/api/v1"),
            allowed_origins=_env_list(
                "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
            ),
            security_headers_enabled=_env_bool("SECURITY_HEADERS_ENABLED", "true"),
            max_request_bytes=int(os.getenv("MAX_REQUEST_BYTES", str(10 * 1024 * 1024))),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", "true"),
            rate_limit_window_seconds=int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900")),
            rate_limit_max_requests=int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100")),
            auth_rate_limit_window_seconds=int(os.getenv("AUTH_RATE_LIMIT_WINDOW_SECONDS", "900")),
            auth_rate_limit_max_requests=int(os.getenv("AUTH_RATE_LIMIT_MAX_REQUESTS", "5")),
            redis_url=os.getenv("REDIS_URL") or None,
            default_city=os.getenv("DEFAULT_CITY", "Cartagena"),
            default_currency=os.getenv("DEFAULT_CURRENCY", "COP"),
            booking_tax_rate=float(os.getenv("BOOKING_TAX_RATE", "0.19")),
            booking_service_fee=float(os.getenv("BOOKING_SERVICE_FEE", "0")),
            notification_ttl_days=int(os.getenv("NOTIFICATION_TTL_DAYS", "30")),
            audit_log_retention_days=int(os.getenv("AUDIT_LOG_RETENTION_DAYS", "365")),
            revoked_session_retention_days=int(os.getenv("REVOKED_SESSION_RETENTION_DAYS", "30")),
        )
        settings.validate()
        return settings

    def with_overrides(self, **overrides) -> "Settings":
        return replace(self, **overrides)

    def validate(self) -> None:
        """Refuse configurations that must never reach production."""
        if self.is_production and self.secret_key == INSECURE_SECRET_KEY:
            raise RuntimeError("SECRET_KEY must be set in production")
        if self.access_token_expire_minutes <= 0 or self.refresh_token_expire_days <= 0:
            raise RuntimeError("Token lifetimes must be positive")
        if not self.api_prefix.startswith("/"):
            raise RuntimeError("API_PREFIX must start with '/'")
