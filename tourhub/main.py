import logging
import traceback
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings
from .database import build_engine, build_session_factory, create_tables, ping
from .domain.admin.router import router as admin_router
from .domain.auth.router import router as auth_router
from .domain.bookings.router import router as bookings_router
from .domain.business.router import router as business_router
from .domain.notifications.router import router as notifications_router
from .domain.plans.router import router as plans_router
from .domain.reviews.router import router as reviews_router
from .domain.users.router import router as users_router
from .errors import AppError
from .rate_limiter import RateLimiter, connect_redis, standard_rate_limit
from .responses import error_envelope
from .security_headers import SecurityHeadersMiddleware
from .security_middleware import RequestLoggingMiddleware, RequestSizeLimitMiddleware, SuspiciousRequestMiddleware
from .utils.dates import utcnow

logger = logging.getLogger("tourhub")

API_ROUTERS = (
    auth_router,
    users_router,
    plans_router,
    business_router,
    bookings_router,
    reviews_router,
    notifications_router,
    admin_router,
)


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=logging.DEBUG if settings.is_development else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce verbosity of third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.WARNING)


def _validation_errors(exc: RequestValidationError) -> list[dict[str, str]]:
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(location) or "request", "message": error.get("msg", "Invalid value")})
    return errors


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = request.app.state.logger
        if exc.is_operational:
            log.warning(f"{request.method} {request.url.path} - {exc.status_code} {exc.code}: {exc.message}")
            message = exc.message
        else:
            log.error(f"{request.method} {request.url.path} - {exc!r}", exc_info=exc)
            message = "Something went wrong"
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(message, exc.code, exc.details),
            headers=exc.headers or None,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """
        Convert validation errors into the error envelope. A malformed
        Authorization header is an authentication failure, not a bad request.
        """
        log = request.app.state.logger
        for error in exc.errors():
            if error.get("loc") and "authorization" in str(error.get("loc")).lower():
                log.warning(f"Authentication failed for {request.url.path}: Missing or invalid Authorization header")
                return JSONResponse(
                    status_code=401,
                    content=error_envelope("Access token required", "AUTHENTICATION_ERROR"),
                )

        errors = _validation_errors(exc)
        log.warning(f"Validation error for {request.url.path}: {errors}")
        return JSONResponse(
            status_code=400,
            content=error_envelope("Validation failed", "VALIDATION_ERROR", {"errors": errors}),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(
                status_code=404,
                content=error_envelope(f"Route {request.url.path} not found", "ROUTE_NOT_FOUND"),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail), "HTTP_ERROR"),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        settings: Settings = request.app.state.settings
        request.app.state.logger.error(f"{request.method} {request.url.path} - Error: {exc}", exc_info=exc)
        details = {"stack": traceback.format_exception(exc)} if settings.is_development else None
        return JSONResponse(
            status_code=500,
            content=error_envelope("Something went wrong", "INTERNAL_SERVER_ERROR", details),
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    settings.validate()
    configure_logging(settings)

    engine = build_engine(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application starting up...")
        if settings.db_create_tables:
            create_tables(engine)
        yield
        logger.info("Application shutting down...")
        engine.dispose()

    app = FastAPI(title=settings.app_name, version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.rate_limiter = RateLimiter(connect_redis(settings.redis_url))
    app.state.logger = logger

    register_exception_handlers(app)

    # Middleware runs in reverse order of registration
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SuspiciousRequestMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    if settings.security_headers_enabled:
        app.add_middleware(
            SecurityHeadersMiddleware,
            exclude_paths=["/docs", "/openapi.json"],
            is_production=settings.is_production,
            frontend_origins=settings.allowed_origins,
        )
        logger.info("Security headers enabled")
    else:
        logger.warning("Security headers DISABLED - only use in development!")

    logger.info(f"CORS allowed origins: {settings.allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
    )

    for router in API_ROUTERS:
        app.include_router(router, prefix=settings.api_prefix, dependencies=[Depends(standard_rate_limit)])

    @app.get("/health")
    def health(request: Request):
        db = request.app.state.session_factory()
        try:
            database_ok = ping(db)
        finally:
            db.close()
        return JSONResponse(
            status_code=200 if database_ok else 503,
            content={
                "success": database_ok,
                "message": "Server is running" if database_ok else "Database unavailable",
                "timestamp": utcnow().isoformat() + "Z",
                "environment": settings.environment,
                "database": "connected" if database_ok else "disconnected",
            },
        )

    return app


def run() -> None:
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    run()
