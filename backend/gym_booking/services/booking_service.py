"""
Class booking service: eligibility, commit and cancellation.

BOOKING FLOW
============

  book_class = check_eligibility -> commit_booking

check_eligibility is advisory. It reads the profile, the class, the
confirmed-booking count and any existing booking, and fails fast with the
most specific error so the member gets actionable feedback ("this class is
full" vs "you already booked it"). Nothing it read is trusted by the
commit; state can change between the two.

COMMIT STRATEGIES
=================

The store declares `supports_atomic_booking`.

Atomic (preferred):
  The store re-checks credits, capacity and duplicates, inserts the
  booking and debits one credit as one unit of work. Concurrent bookers
  for the last spot cannot both win. Its result is authoritative.

Sequential fallback (stores without a transaction primitive):
  1. Re-fetch the profile, reject if credits <= 0
  2. Insert the booking                 (compensation: delete it)
  3. Write credits - 1
  If step 3 fails the booking is deleted before the error is raised, so
  the caller sees "booking not created".

  Known weaknesses of the fallback, not fixable without store-level
  transactions:
  - A crash between steps 2 and 3 leaves a booking with no credit debited
  - Capacity is checked before the insert, so two bookers can both take
    the last spot (check-then-act)
  - The credit write is a read-modify-write, so a concurrent top-up can
    be lost

Cancellation follows the same split: atomic cancel+refund, or a saga that
restores the booking to confirmed when the refund cannot be written.
"""

from dataclasses import dataclass

from gym_booking.core.errors import (
    AvailabilityCheckFailed,
    BookingError,
    BookingInsertFailed,
    BookingNotFound,
    CancellationFailed,
    ClassFull,
    ClassNotFound,
    CompensationFailed,
    CreditDebitFailed,
    CreditRefundFailed,
    DuplicateBooking,
    InsufficientCredits,
    StoreError,
    UserNotFound,
)
from gym_booking.core.logging import get_logger
from gym_booking.core.metrics import booking_latency, record_booking_attempt, record_cancellation
from gym_booking.models.booking import BookingStatus
from gym_booking.schemas.booking import BookingRead
from gym_booking.schemas.class_schedule import ClassScheduleRead
from gym_booking.services.interfaces.store import BookingStore
from gym_booking.services.saga import Saga, SagaStep

logger = get_logger(__name__)


@dataclass(frozen=True)
class Eligibility:
    credits: int
    class_schedule: ClassScheduleRead


async def check_eligibility(store: BookingStore, user_id: int, class_id: int) -> Eligibility:
    """Validate that `user_id` may book `class_id` right now. No side effects."""
    profile = await store.get_profile(user_id)
    if profile is None:
        raise UserNotFound()
    if profile.credits <= 0:
        raise InsufficientCredits()

    class_schedule = await store.get_class(class_id)
    if class_schedule is None:
        raise ClassNotFound()

    try:
        confirmed = await store.count_confirmed_bookings(class_id)
    except StoreError as e:
        raise AvailabilityCheckFailed() from e
    if confirmed >= class_schedule.capacity:
        raise ClassFull(class_schedule.title)

    if await store.find_confirmed_booking(user_id, class_id) is not None:
        raise DuplicateBooking()

    return Eligibility(credits=profile.credits, class_schedule=class_schedule)


async def commit_booking(store: BookingStore, user_id: int, class_id: int) -> BookingRead:
    """Create a confirmed booking and debit one credit, all or nothing."""
    if store.supports_atomic_booking:
        return await store.atomic_book_class(user_id, class_id)

    # Do not trust the eligibility snapshot
    profile = await store.get_profile(user_id)
    if profile is None:
        raise UserNotFound()
    if profile.credits <= 0:
        raise InsufficientCredits()

    saga = Saga(
        "book_class",
        [
            SagaStep(
                "insert_booking",
                action=lambda: store.insert_booking(user_id, class_id),
                compensation=lambda booking: store.delete_booking(booking.id),
                on_failure=BookingInsertFailed,
            ),
            SagaStep(
                "debit_credit",
                action=lambda: store.update_credits(user_id, profile.credits - 1),
                on_failure=CreditDebitFailed,
            ),
        ],
        user_id=user_id,
        class_id=class_id,
    )
    booking, _ = await saga.run()
    return booking


async def book_class(store: BookingStore, user_id: int, class_id: int) -> BookingRead:
    """
    Book a class for an already authenticated member.

    Raises the specific BookingError subclass for every failure; no partial
    success is ever returned.
    """
    with booking_latency.time():
        try:
            eligibility = await check_eligibility(store, user_id, class_id)
            booking = await commit_booking(store, user_id, class_id)
        except CompensationFailed as e:
            record_booking_attempt("error")
            logger.critical(
                "booking_needs_reconciliation",
                user_id=user_id,
                class_id=class_id,
                step=e.step,
                original_error=e.original.error_code,
            )
            raise
        except (StoreError, BookingInsertFailed, CreditDebitFailed, AvailabilityCheckFailed) as e:
            record_booking_attempt("error")
            logger.error("booking_failed", user_id=user_id, class_id=class_id, error=e.error_code)
            raise
        except BookingError as e:
            record_booking_attempt("rejected")
            logger.info("booking_rejected", user_id=user_id, class_id=class_id, reason=e.error_code)
            raise

    record_booking_attempt("success")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        class_id=class_id,
        class_title=eligibility.class_schedule.title,
        credits_before=eligibility.credits,
        atomic=store.supports_atomic_booking,
    )
    return booking


async def _refund_credit(store: BookingStore, user_id: int) -> None:
    profile = await store.get_profile(user_id)
    if profile is None:
        raise UserNotFound()
    await store.update_credits(user_id, profile.credits + 1)


async def cancel_booking(store: BookingStore, user_id: int, booking_id: int) -> BookingRead:
    """
    Cancel a confirmed booking and refund one credit.

    Not found, owned by someone else and already cancelled are all reported
    as BookingNotFound.
    """
    try:
        if store.supports_atomic_booking:
            cancelled = await store.atomic_cancel_booking(user_id, booking_id)
        else:
            booking = await store.get_booking(booking_id, user_id)
            if booking is None:
                raise BookingNotFound()
            saga = Saga(
                "cancel_booking",
                [
                    SagaStep(
                        "cancel_booking",
                        # Only one of several concurrent cancels wins the transition
                        action=lambda: store.update_booking_status(
                            booking.id, BookingStatus.CANCELLED, expected=BookingStatus.CONFIRMED
                        ),
                        compensation=lambda _: store.update_booking_status(
                            booking.id, BookingStatus.CONFIRMED, expected=BookingStatus.CANCELLED
                        ),
                        on_failure=CancellationFailed,
                    ),
                    SagaStep(
                        "refund_credit",
                        action=lambda: _refund_credit(store, user_id),
                        on_failure=CreditRefundFailed,
                    ),
                ],
                user_id=user_id,
                booking_id=booking_id,
            )
            cancelled, _ = await saga.run()
    except BookingNotFound:
        record_cancellation("rejected")
        logger.info("cancellation_rejected", user_id=user_id, booking_id=booking_id)
        raise
    except BookingError as e:
        record_cancellation("error")
        logger.error("cancellation_failed", user_id=user_id, booking_id=booking_id, error=e.error_code)
        raise

    record_cancellation("success")
    logger.info(
        "booking_cancelled",
        booking_id=cancelled.id,
        user_id=user_id,
        class_id=cancelled.class_id,
        credits_restored=1,
    )
    return cancelled


async def get_user_bookings(store: BookingStore, user_id: int) -> list[BookingRead]:
    """Get all bookings for a user, newest first."""
    return await store.list_user_bookings(user_id)
