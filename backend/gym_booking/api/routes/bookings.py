"""
Booking endpoints: book a class, cancel (refund), list own bookings.
"""

from fastapi import APIRouter, Depends, status

from gym_booking.schemas.booking import BookingCreate, BookingResponse, BookingCancelResponse
from gym_booking.services.booking_service import book_class, cancel_booking, get_user_bookings
from gym_booking.services.cache_service import invalidate_class_cache
from gym_booking.services.interfaces.store import BookingStore
from gym_booking.services.store_factory import get_booking_store
from gym_booking.core.logging import bind_booking_context
from gym_booking.core.security import get_current_user_id

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    user_id: int = Depends(get_current_user_id),
    store: BookingStore = Depends(get_booking_store),
):
    """
    Book a spot in a class, spending one credit.

    Fails with a specific error code when the member has no credits, the
    class is full, or the member already holds a booking for it.
    """
    bind_booking_context(user_id, class_id=booking_data.class_id)
    booking = await book_class(store, user_id, booking_data.class_id)
    # Spot counts in the cached listings are now stale
    await invalidate_class_cache()
    return booking


@router.delete("/{booking_id}", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    booking_id: int,
    user_id: int = Depends(get_current_user_id),
    store: BookingStore = Depends(get_booking_store),
):
    """Cancel a booking and refund its credit."""
    bind_booking_context(user_id, booking_id=booking_id)
    booking = await cancel_booking(store, user_id, booking_id)
    await invalidate_class_cache()
    return BookingCancelResponse(
        message="Booking cancelled and credit refunded",
        booking_id=booking.id,
        status=booking.status,
    )


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: int = Depends(get_current_user_id),
    store: BookingStore = Depends(get_booking_store),
):
    """Get all bookings for the authenticated member."""
    return await get_user_bookings(store, user_id)
