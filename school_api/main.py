from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded

from .circuit_breaker import create_booking_breaker
from .config import DEFAULT_JWT_SECRET, Settings, get_settings
from .database import Database
from .error_handlers import register_exception_handlers
from .logger import get_logger, setup_logging
from .routers import activities, auth, bookings, rooms, students, teachers
from . import models  # noqa: F401  (registers tables on Base.metadata)

logger = get_logger()

ROUTERS = (auth, students, teachers, activities, rooms, bookings)


def _check_secret(settings: Settings) -> None:
    if settings.jwt_secret != DEFAULT_JWT_SECRET:
        return
    if settings.is_production:
        raise RuntimeError("SCHOOL_JWT_SECRET must be set in production")
    logger.warning("SCHOOL_JWT_SECRET not provided, using insecure default for development")


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    """
    Build the application.

    ``database`` may be handed in already opened (tests do this); otherwise
    the app owns a handle built from ``settings`` and opens/closes it in its
    lifespan.
    """
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_file)
    _check_secret(settings)

    owns_database = database is None
    database = database or Database(settings.database_url, echo=settings.database_echo)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database.open()
        database.create_all()
        logger.info("School API started (%s)", settings.environment)
        try:
            yield
        finally:
            if owns_database:
                database.close()
            logger.info("School API stopped")

    app = FastAPI(
        title=settings.app_title,
        version="1.0.0",
        description="Students, teachers, activities, rooms and conflict-checked room bookings.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = database
    app.state.booking_breaker = create_booking_breaker(
        fail_max=settings.breaker_fail_max,
        reset_timeout=settings.breaker_reset_timeout,
    )

    # -----------------------------------------
    # Rate Limiter
    # -----------------------------------------
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit],
        enabled=settings.rate_limit_enabled,
    )
    app.add_middleware(SlowAPIMiddleware)

    register_exception_handlers(app)

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={
                "detail": "Rate limit exceeded. Please try again later.",
                "error": "too_many_requests",
                "path": str(request.url.path),
            },
        )

    # -----------------------------------------
    # Routers (/api + versioned /api/v1)
    # -----------------------------------------
    for module in ROUTERS:
        app.include_router(module.router, prefix="/api")
    for module in ROUTERS:
        app.include_router(module.router, prefix="/api/v1")

    @app.get("/health", tags=["health"])
    def health_check():
        return {"status": "healthy", "service": "school-api"}

    return app
