"""
Booking store factory.
Configures which store backend (and commit strategy) requests use.
"""

from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gym_booking.core.config import Settings, get_settings
from gym_booking.core.logging import get_logger
from gym_booking.db.session import get_db
from gym_booking.infrastructure.memory_store import InMemoryBookingStore
from gym_booking.infrastructure.sql_store import SqlBookingStore
from gym_booking.models.profile import UserRole
from gym_booking.services.interfaces.store import BookingStore

logger = get_logger(__name__)
settings = get_settings()

# Process-wide instance for BOOKING_STORE=memory
_memory_store: Optional[InMemoryBookingStore] = None


def build_memory_store(config: Settings) -> InMemoryBookingStore:
    """In-memory store holding the profiles listed in MEMORY_SEED_PROFILES."""
    store = InMemoryBookingStore(atomic=config.ATOMIC_BOOKING_ENABLED)
    for seed in config.MEMORY_SEED_PROFILES:
        profile = store.add_profile(
            seed.email,
            seed.full_name,
            credits=seed.credits,
            role=UserRole(seed.role),
        )
        logger.info(
            "memory_profile_seeded",
            user_id=profile.id,
            email=profile.email,
            role=profile.role.value,
            credits=profile.credits,
        )
    if not config.MEMORY_SEED_PROFILES:
        logger.warning(
            "memory_store_empty",
            message="No MEMORY_SEED_PROFILES configured; every request will get USER_NOT_FOUND",
        )
    return store


def get_memory_store() -> InMemoryBookingStore:
    global _memory_store
    if _memory_store is None:
        _memory_store = build_memory_store(settings)
    return _memory_store


async def get_booking_store(db: AsyncSession = Depends(get_db)) -> BookingStore:
    """
    Request-scoped booking store.

    - sql (default): SqlBookingStore over the request's session
    - memory: one in-process store seeded from settings, for demos and
      local development

    ATOMIC_BOOKING_ENABLED=false selects the sequential fallback with
    compensating rollback.
    """
    if settings.BOOKING_STORE == "memory":
        return get_memory_store()
    return SqlBookingStore(db, atomic=settings.ATOMIC_BOOKING_ENABLED)
