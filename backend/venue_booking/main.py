"""
Venue Booking API - Main Application Entry Point

Allocates one event venue across calendar dates:
- Pending requests, at most one Confirmed reservation per overlapping interval
- Optimistic locking so concurrent confirms cannot double-book the venue
- Automatic decline of pending requests that overlap a confirmation
- Append-only confirmation log as the audit trail
- Structured logging with request correlation
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from venue_booking.api.middleware import RequestLoggingMiddleware
from venue_booking.api.router import api_router
from venue_booking.core.config import get_settings
from venue_booking.core.exceptions import ReservationError, StoreError
from venue_booking.core.logging import get_logger, setup_logging
from venue_booking.core.metrics import metrics_endpoint
from venue_booking.db.schema import ensure_schema
from venue_booking.db.session import engine
from venue_booking.services.cache_service import close_redis, get_cache_stats, get_redis

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        consistency_mode=settings.CONSISTENCY_MODE,
    )

    changes = await ensure_schema(engine)
    logger.info("schema_ready", changes=changes)

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Single-venue reservation API with conflict detection and automatic decline",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    return JSONResponse(status_code=exc.status_code, content=exc.detail)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("store_error", error=str(exc), error_type=type(exc).__name__)
    error = StoreError("Database error occurred.", error=exc if settings.DEBUG else None)
    return JSONResponse(status_code=error.status_code, content=error.detail)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "consistency_mode": settings.CONSISTENCY_MODE,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
