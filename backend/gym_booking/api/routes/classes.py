"""
Class schedule endpoints with Redis caching on list operations.
"""

from fastapi import APIRouter, Depends, Query, status

from gym_booking.core.logging import get_logger
from gym_booking.core.security import Principal, get_current_principal, require_roles
from gym_booking.models.profile import UserRole
from gym_booking.schemas.class_schedule import (
    ClassCreate,
    ClassListResponse,
    ClassResponse,
    ClassScheduleRead,
)
from gym_booking.services.cache_service import (
    get_cached_classes,
    invalidate_class_cache,
    set_cached_classes,
)
from gym_booking.services.class_service import create_class, get_class_availability, list_classes
from gym_booking.services.interfaces.store import BookingStore
from gym_booking.services.store_factory import get_booking_store

logger = get_logger(__name__)
router = APIRouter(prefix="/classes", tags=["Classes"])


@router.post("/", response_model=ClassScheduleRead, status_code=status.HTTP_201_CREATED)
async def create_class_endpoint(
    class_data: ClassCreate,
    principal: Principal = Depends(require_roles(UserRole.ADMIN, UserRole.COACH)),
    store: BookingStore = Depends(get_booking_store),
):
    """Schedule a new class. Admins and coaches only."""
    class_schedule = await create_class(store, class_data)
    await invalidate_class_cache()
    return class_schedule


@router.get("/", response_model=ClassListResponse)
async def list_classes_endpoint(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    upcoming_only: bool = Query(True),
    principal: Principal = Depends(get_current_principal),
    store: BookingStore = Depends(get_booking_store),
):
    """
    List classes with remaining spots.
    Results are cached in Redis for 5 minutes and invalidated on every
    booking, cancellation and new class.
    """
    cached = await get_cached_classes(page, page_size, upcoming_only)
    if cached:
        logger.info("classes_list_cache_hit", page=page)
        cached["cached"] = True
        return ClassListResponse(**cached)

    classes, total = await list_classes(store, page, page_size, upcoming_only)

    response_data = {
        "classes": [ClassResponse.from_availability(c).model_dump(mode="json") for c in classes],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_classes(page, page_size, upcoming_only, response_data)

    return ClassListResponse(**response_data)


@router.get("/{class_id}", response_model=ClassResponse)
async def get_class_endpoint(
    class_id: int,
    principal: Principal = Depends(get_current_principal),
    store: BookingStore = Depends(get_booking_store),
):
    """Get a single class. Not cached (members check it right before booking)."""
    availability = await get_class_availability(store, class_id)
    return ClassResponse.from_availability(availability)
