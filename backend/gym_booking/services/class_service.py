"""
Class schedule service: creation and availability reads.
"""

from datetime import datetime, timezone

from fastapi import HTTPException, status

from gym_booking.core.errors import ClassNotFound
from gym_booking.core.logging import get_logger
from gym_booking.schemas.class_schedule import ClassAvailability, ClassCreate, ClassScheduleRead
from gym_booking.services.interfaces.store import BookingStore

logger = get_logger(__name__)


async def create_class(store: BookingStore, class_data: ClassCreate) -> ClassScheduleRead:
    """Schedule a new class. Capacity is fixed from here on."""
    if class_data.start_time <= datetime.now(timezone.utc):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Class start time must be in the future",
        )

    class_schedule = await store.insert_class(class_data)
    logger.info(
        "class_created",
        class_id=class_schedule.id,
        title=class_schedule.title,
        capacity=class_schedule.capacity,
    )
    return class_schedule


async def get_class_availability(store: BookingStore, class_id: int) -> ClassAvailability:
    """Single class with a live confirmed-booking count."""
    class_schedule = await store.get_class(class_id)
    if class_schedule is None:
        raise ClassNotFound()
    confirmed = await store.count_confirmed_bookings(class_id)
    return ClassAvailability(**class_schedule.model_dump(), confirmed_count=confirmed)


async def list_classes(
    store: BookingStore,
    page: int = 1,
    page_size: int = 20,
    upcoming_only: bool = True,
) -> tuple[list[ClassAvailability], int]:
    """List classes ordered by start time, with spot counts."""
    return await store.list_classes(page, page_size, upcoming_only)
