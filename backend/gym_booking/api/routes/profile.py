"""
Member profile endpoints.
"""

from fastapi import APIRouter, Depends

from gym_booking.core.security import get_current_user_id
from gym_booking.schemas.profile import ProfileRead
from gym_booking.services.interfaces.store import BookingStore
from gym_booking.services.profile_service import get_profile
from gym_booking.services.store_factory import get_booking_store

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("/me", response_model=ProfileRead)
async def read_my_profile(
    user_id: int = Depends(get_current_user_id),
    store: BookingStore = Depends(get_booking_store),
):
    """The authenticated member's profile and credit balance."""
    return await get_profile(store, user_id)
