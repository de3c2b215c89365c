"""
Profile and credit balance operations outside the booking transaction.
"""

from gym_booking.core.errors import UserNotFound
from gym_booking.core.logging import get_logger
from gym_booking.schemas.profile import ProfileRead
from gym_booking.services.interfaces.store import BookingStore

logger = get_logger(__name__)


async def get_profile(store: BookingStore, user_id: int) -> ProfileRead:
    profile = await store.get_profile(user_id)
    if profile is None:
        raise UserNotFound()
    return profile


async def grant_credits(store: BookingStore, user_id: int, amount: int, granted_by: int) -> ProfileRead:
    """
    Top up a member's credits (package purchase confirmed at the front desk
    or by the payment provider). Runs as one store-side increment so it
    cannot overwrite a concurrent booking debit.
    """
    profile = await store.grant_credits(user_id, amount)
    if profile is None:
        raise UserNotFound()
    logger.info(
        "credits_granted",
        user_id=user_id,
        amount=amount,
        balance=profile.credits,
        granted_by=granted_by,
    )
    return profile
