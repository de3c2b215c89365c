"""
Gym Booking API - Main Application Entry Point

Class booking for gym members:
- Credit-based class reservations with capacity and duplicate checks
- Atomic booking/cancellation, with compensating rollback on stores
  without transactions
- Redis caching of class listings with invalidation on every booking
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gym_booking.core.config import get_settings
from gym_booking.core.errors import BookingError
from gym_booking.core.logging import setup_logging, get_logger
from gym_booking.core.metrics import metrics_endpoint
from gym_booking.api.router import api_router
from gym_booking.api.middleware import RequestLoggingMiddleware
from gym_booking.services.cache_service import get_redis, close_redis, get_cache_stats
from gym_booking.services.store_factory import get_memory_store

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
        booking_store=settings.BOOKING_STORE,
        atomic_booking=settings.ATOMIC_BOOKING_ENABLED,
    )
    if not settings.ATOMIC_BOOKING_ENABLED:
        logger.warning(
            "atomic_booking_disabled",
            message="Sequential booking with compensation; last-spot races can overbook",
        )
    if settings.BOOKING_STORE == "memory":
        # Seed before the first request
        get_memory_store()

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Gym class booking API with credit-based, capacity-safe reservations",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.to_dict()},
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "booking_store": settings.BOOKING_STORE,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
