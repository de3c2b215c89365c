"""
Admin panel endpoints.
"""

from fastapi import APIRouter, Depends

from gym_booking.core.security import Principal, require_roles
from gym_booking.models.profile import UserRole
from gym_booking.schemas.profile import CreditGrant, ProfileRead
from gym_booking.services.interfaces.store import BookingStore
from gym_booking.services.profile_service import grant_credits
from gym_booking.services.store_factory import get_booking_store

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post("/profiles/{user_id}/credits", response_model=ProfileRead)
async def grant_credits_endpoint(
    user_id: int,
    grant: CreditGrant,
    principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    store: BookingStore = Depends(get_booking_store),
):
    """Add credits to a member's balance."""
    return await grant_credits(store, user_id, grant.amount, granted_by=principal.user_id)
