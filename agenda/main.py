"""
Agenda API

FastAPI application entry point that ties all components together.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agenda.api.middleware.rate_limit import RateLimitMiddleware
from agenda.api.routes import appointments, availability, exceptions, health
from agenda.config import settings
from agenda.core.scheduling import (
    AmbiguousTimezone,
    BusinessClosed,
    ExceptionConflict,
    InvalidArgument,
    NoProfessionalAvailable,
    NotFound,
    SchedulingError,
    SlotConflict,
)
from agenda.infra.database import close_db, init_db
from agenda.infra.notifications import get_notification_dispatcher
from agenda.infra.redis import RedisClient

# Most specific first; subclasses (InvalidTransition) resolve via isinstance
ERROR_STATUS_CODES: list[tuple[type[SchedulingError], int]] = [
    (AmbiguousTimezone, status.HTTP_400_BAD_REQUEST),
    (InvalidArgument, status.HTTP_400_BAD_REQUEST),
    (BusinessClosed, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (SlotConflict, status.HTTP_409_CONFLICT),
    (NoProfessionalAvailable, status.HTTP_409_CONFLICT),
    (ExceptionConflict, status.HTTP_409_CONFLICT),
]


def status_code_for(exc: SchedulingError) -> int:
    """HTTP status for a scheduling error."""
    for error_class, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


def setup_logging() -> None:
    """Configure logging based on environment."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # === STARTUP ===
    setup_logging()
    logger.info(f"Starting {settings.app_name} in {settings.app_env} mode")

    health.set_start_time()

    # Create tables only in development; use migrations elsewhere
    if settings.is_development:
        try:
            await init_db()
            logger.info("Database tables initialized")
        except Exception as e:
            logger.warning(f"Database init skipped: {e}")

    redis = await RedisClient.get_client()
    if redis:
        logger.info("Redis connection established")
    else:
        logger.warning("Redis unavailable - rate limiting disabled")

    logger.info(f"Application ready at http://{settings.host}:{settings.port}")

    yield

    # === SHUTDOWN ===
    logger.info("Shutting down application...")

    await get_notification_dispatcher().close()
    logger.info("Pending notifications flushed")

    await RedisClient.close()
    await close_db()
    logger.info("Database connections closed")

    logger.info("Shutdown complete")


app = FastAPI(
    title="Agenda API",
    description="""
    Multi-tenant appointment booking.

    ## Features
    - Availability on a 5-minute grid with duration-fit filtering
    - Race-safe booking with automatic professional allocation
    - Blocks and days off per professional

    ## Tenancy
    Public endpoints resolve the business from its slug. Management
    endpoints require the `X-Tenant-ID` header.
    """,
    version=health.VERSION,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    openapi_url="/openapi.json" if settings.is_development else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RateLimitMiddleware)


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(
    request: Request,
    exc: SchedulingError,
) -> JSONResponse:
    """Map domain errors to distinct status codes and messages."""
    code = status_code_for(exc)
    logger.info(
        f"Request rejected | {request.method} {request.url.path} | "
        f"Error: {exc.code} | Status: {code} | {exc.message}"
    )
    return JSONResponse(status_code=code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Missing or malformed parameters."""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": "validation_error",
            "detail": jsonable_errors(exc),
        },
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors without non-serializable context objects."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
        for err in exc.errors()
    ]


@app.exception_handler(Exception)
async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    detail = str(exc) if settings.is_development else "Internal server error"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": detail,
        },
    )


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    """Log request duration in debug mode."""
    start_time = time.time()
    try:
        return await call_next(request)
    finally:
        if settings.debug:
            duration = time.time() - start_time
            logger.debug(
                f"{request.method} {request.url.path} "
                f"completed in {duration:.3f}s"
            )


app.include_router(health.router)
app.include_router(availability.public_router)
app.include_router(availability.router)
app.include_router(appointments.public_router)
app.include_router(appointments.router)
app.include_router(exceptions.router)


@app.get("/", tags=["Root"])
async def root() -> dict:
    """Basic API information."""
    return {
        "name": settings.app_name,
        "version": health.VERSION,
        "status": "running",
        "environment": settings.app_env,
        "docs": "/docs" if settings.is_development else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agenda.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level="debug" if settings.debug else "info",
    )
