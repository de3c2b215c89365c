"""
Tests for the booking service against the in-memory store: eligibility,
both commit strategies, compensation and concurrent bookers.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from gym_booking.core.errors import (
    AvailabilityCheckFailed,
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
from gym_booking.infrastructure.memory_store import InMemoryBookingStore
from gym_booking.models.booking import BookingStatus
from gym_booking.schemas.class_schedule import ClassCreate
from gym_booking.services.booking_service import book_class, cancel_booking, check_eligibility


class FlakyStore(InMemoryBookingStore):
    """In-memory store whose named operations fail like an unreachable backend."""

    def __init__(self, fail_on=(), atomic: bool = False):
        super().__init__(atomic=atomic)
        self.fail_on = set(fail_on)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreError(operation)

    async def count_confirmed_bookings(self, class_id):
        self._maybe_fail("count_confirmed_bookings")
        return await super().count_confirmed_bookings(class_id)

    async def insert_booking(self, user_id, class_id):
        self._maybe_fail("insert_booking")
        return await super().insert_booking(user_id, class_id)

    async def delete_booking(self, booking_id):
        self._maybe_fail("delete_booking")
        return await super().delete_booking(booking_id)

    async def update_credits(self, user_id, credits):
        self._maybe_fail("update_credits")
        return await super().update_credits(user_id, credits)

    async def update_booking_status(self, booking_id, status, expected=None):
        self._maybe_fail(f"update_booking_status:{status.value}")
        return await super().update_booking_status(booking_id, status, expected)


async def add_class(store: InMemoryBookingStore, title: str = "CrossFit", capacity: int = 1):
    start = datetime.now(timezone.utc) + timedelta(days=2)
    return await store.insert_class(
        ClassCreate(
            title=title,
            capacity=capacity,
            start_time=start,
            end_time=start + timedelta(hours=1),
        )
    )


async def credits_of(store: InMemoryBookingStore, user_id: int) -> int:
    return (await store.get_profile(user_id)).credits


# Eligibility

@pytest.mark.asyncio
async def test_eligibility_ok(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=3)
    yoga = await add_class(memory_store, "Yoga", capacity=10)

    eligibility = await check_eligibility(memory_store, member.id, yoga.id)

    assert eligibility.credits == 3
    assert eligibility.class_schedule.title == "Yoga"


@pytest.mark.asyncio
async def test_eligibility_unknown_user(memory_store):
    yoga = await add_class(memory_store)
    with pytest.raises(UserNotFound):
        await check_eligibility(memory_store, 404, yoga.id)


@pytest.mark.asyncio
async def test_eligibility_checks_credits_before_class(memory_store):
    """A member with no credits hears about credits even for a missing class."""
    member = memory_store.add_profile("ana@example.com", "Ana", credits=0)
    with pytest.raises(InsufficientCredits):
        await check_eligibility(memory_store, member.id, 12345)


@pytest.mark.asyncio
async def test_eligibility_unknown_class(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    with pytest.raises(ClassNotFound):
        await check_eligibility(memory_store, member.id, 12345)


@pytest.mark.asyncio
async def test_eligibility_class_full(memory_store):
    first = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    second = memory_store.add_profile("luis@example.com", "Luis", credits=1)
    crossfit = await add_class(memory_store, "CrossFit", capacity=1)
    await book_class(memory_store, first.id, crossfit.id)

    with pytest.raises(ClassFull) as exc_info:
        await check_eligibility(memory_store, second.id, crossfit.id)
    assert exc_info.value.class_title == "CrossFit"


@pytest.mark.asyncio
async def test_eligibility_duplicate(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(memory_store, "Yoga", capacity=10)
    await book_class(memory_store, member.id, yoga.id)

    with pytest.raises(DuplicateBooking):
        await check_eligibility(memory_store, member.id, yoga.id)


@pytest.mark.asyncio
async def test_eligibility_availability_check_failed():
    store = FlakyStore(fail_on={"count_confirmed_bookings"})
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)

    with pytest.raises(AvailabilityCheckFailed):
        await check_eligibility(store, member.id, yoga.id)


# Atomic commit

@pytest.mark.asyncio
async def test_book_class_debits_one_credit(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(memory_store, "Yoga", capacity=10)

    booking = await book_class(memory_store, member.id, yoga.id)

    assert booking.status == BookingStatus.CONFIRMED
    assert booking.user_id == member.id
    assert await credits_of(memory_store, member.id) == 1
    assert await memory_store.count_confirmed_bookings(yoga.id) == 1


@pytest.mark.asyncio
async def test_concurrent_bookers_never_exceed_capacity(memory_store):
    members = [
        memory_store.add_profile(f"member{i}@example.com", f"Member {i}", credits=1)
        for i in range(10)
    ]
    crossfit = await add_class(memory_store, "CrossFit", capacity=3)

    results = await asyncio.gather(
        *(book_class(memory_store, m.id, crossfit.id) for m in members),
        return_exceptions=True,
    )

    booked = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(booked) == 3
    assert all(isinstance(r, ClassFull) for r in rejected)
    assert await memory_store.count_confirmed_bookings(crossfit.id) == 3

    # Exactly the winners paid
    winners = {b.user_id for b in booked}
    for m in members:
        expected = 0 if m.id in winners else 1
        assert await credits_of(memory_store, m.id) == expected


@pytest.mark.asyncio
async def test_concurrent_double_booking_same_class(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=5)
    yoga = await add_class(memory_store, "Yoga", capacity=10)

    results = await asyncio.gather(
        book_class(memory_store, member.id, yoga.id),
        book_class(memory_store, member.id, yoga.id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, DuplicateBooking)) == 1
    assert await credits_of(memory_store, member.id) == 4


@pytest.mark.asyncio
async def test_concurrent_bookings_spend_last_credit_once(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(memory_store, "Yoga", capacity=10)
    spinning = await add_class(memory_store, "Spinning", capacity=10)

    results = await asyncio.gather(
        book_class(memory_store, member.id, yoga.id),
        book_class(memory_store, member.id, spinning.id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, InsufficientCredits)) == 1
    assert await credits_of(memory_store, member.id) == 0


# Sequential fallback

@pytest.mark.asyncio
async def test_fallback_books_and_debits():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(store, "Yoga", capacity=10)

    booking = await book_class(store, member.id, yoga.id)

    assert booking.status == BookingStatus.CONFIRMED
    assert await credits_of(store, member.id) == 1


@pytest.mark.asyncio
async def test_fallback_insert_failure():
    store = FlakyStore(fail_on={"insert_booking"})
    member = store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(store, "Yoga", capacity=10)

    with pytest.raises(BookingInsertFailed):
        await book_class(store, member.id, yoga.id)

    assert await credits_of(store, member.id) == 2
    assert await store.list_user_bookings(member.id) == []


@pytest.mark.asyncio
async def test_fallback_debit_failure_deletes_booking():
    """The caller sees 'booking not created' and no booking is left behind."""
    store = FlakyStore(fail_on={"update_credits"})
    member = store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(store, "Yoga", capacity=10)

    with pytest.raises(CreditDebitFailed):
        await book_class(store, member.id, yoga.id)

    assert await store.list_user_bookings(member.id) == []
    assert await store.count_confirmed_bookings(yoga.id) == 0
    assert await credits_of(store, member.id) == 2


@pytest.mark.asyncio
async def test_fallback_failed_rollback_is_reported():
    store = FlakyStore(fail_on={"update_credits", "delete_booking"})
    member = store.add_profile("ana@example.com", "Ana", credits=2)
    yoga = await add_class(store, "Yoga", capacity=10)

    with pytest.raises(CompensationFailed) as exc_info:
        await book_class(store, member.id, yoga.id)

    assert exc_info.value.step == "insert_booking"
    assert isinstance(exc_info.value.original, CreditDebitFailed)
    # Orphaned booking stays for reconciliation
    assert await store.count_confirmed_bookings(yoga.id) == 1


@pytest.mark.asyncio
async def test_fallback_rejects_without_credits():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)
    spinning = await add_class(store, "Spinning", capacity=10)
    await book_class(store, member.id, yoga.id)

    with pytest.raises(InsufficientCredits):
        await book_class(store, member.id, spinning.id)
    assert await store.count_confirmed_bookings(spinning.id) == 0


# Cancellation

@pytest.mark.asyncio
async def test_cancel_refunds_credit(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    crossfit = await add_class(memory_store, "CrossFit", capacity=1)
    booking = await book_class(memory_store, member.id, crossfit.id)

    cancelled = await cancel_booking(memory_store, member.id, booking.id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert await credits_of(memory_store, member.id) == 1
    assert await memory_store.count_confirmed_bookings(crossfit.id) == 0


@pytest.mark.asyncio
async def test_cancel_twice_refunds_once(memory_store):
    member = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(memory_store, "Yoga", capacity=10)
    booking = await book_class(memory_store, member.id, yoga.id)
    await cancel_booking(memory_store, member.id, booking.id)

    with pytest.raises(BookingNotFound):
        await cancel_booking(memory_store, member.id, booking.id)
    assert await credits_of(memory_store, member.id) == 1


@pytest.mark.asyncio
async def test_cancel_other_members_booking(memory_store):
    owner = memory_store.add_profile("ana@example.com", "Ana", credits=1)
    intruder = memory_store.add_profile("luis@example.com", "Luis", credits=0)
    yoga = await add_class(memory_store, "Yoga", capacity=10)
    booking = await book_class(memory_store, owner.id, yoga.id)

    with pytest.raises(BookingNotFound):
        await cancel_booking(memory_store, intruder.id, booking.id)
    assert await credits_of(memory_store, intruder.id) == 0
    assert await memory_store.count_confirmed_bookings(yoga.id) == 1


@pytest.mark.asyncio
async def test_fallback_cancel_refunds_credit():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)
    booking = await book_class(store, member.id, yoga.id)

    cancelled = await cancel_booking(store, member.id, booking.id)

    assert cancelled.status == BookingStatus.CANCELLED
    assert await credits_of(store, member.id) == 1


@pytest.mark.asyncio
async def test_fallback_concurrent_cancels_refund_once():
    store = InMemoryBookingStore(atomic=False)
    member = store.add_profile("ana@example.com", "Ana", credits=3)
    yoga = await add_class(store, "Yoga", capacity=10)
    booking = await book_class(store, member.id, yoga.id)

    results = await asyncio.gather(
        cancel_booking(store, member.id, booking.id),
        cancel_booking(store, member.id, booking.id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, BookingNotFound)) == 1
    assert sum(1 for r in results if not isinstance(r, Exception)) == 1
    assert await credits_of(store, member.id) == 3


@pytest.mark.asyncio
async def test_fallback_cancel_refund_failure_restores_booking():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)
    booking = await book_class(store, member.id, yoga.id)
    store.fail_on = {"update_credits"}

    with pytest.raises(CreditRefundFailed):
        await cancel_booking(store, member.id, booking.id)

    restored = await store.get_booking(booking.id, member.id)
    assert restored is not None
    assert restored.status == BookingStatus.CONFIRMED
    assert await credits_of(store, member.id) == 0


@pytest.mark.asyncio
async def test_fallback_cancel_failed_restore_is_reported():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)
    booking = await book_class(store, member.id, yoga.id)
    store.fail_on = {"update_credits", "update_booking_status:confirmed"}

    with pytest.raises(CompensationFailed) as exc_info:
        await cancel_booking(store, member.id, booking.id)

    assert exc_info.value.step == "cancel_booking"
    assert isinstance(exc_info.value.original, CreditRefundFailed)


@pytest.mark.asyncio
async def test_fallback_cancel_status_write_failure():
    store = FlakyStore()
    member = store.add_profile("ana@example.com", "Ana", credits=1)
    yoga = await add_class(store, "Yoga", capacity=10)
    booking = await book_class(store, member.id, yoga.id)
    store.fail_on = {"update_booking_status:cancelled"}

    with pytest.raises(CancellationFailed):
        await cancel_booking(store, member.id, booking.id)

    assert (await store.get_booking(booking.id, member.id)) is not None
    assert await credits_of(store, member.id) == 0


@pytest.mark.asyncio
async def test_credits_are_conserved(memory_store):
    """Credits held plus confirmed bookings stays equal to what was granted."""
    member = memory_store.add_profile("ana@example.com", "Ana", credits=3)
    classes = [await add_class(memory_store, f"Class {i}", capacity=5) for i in range(3)]

    bookings = [await book_class(memory_store, member.id, c.id) for c in classes]
    await cancel_booking(memory_store, member.id, bookings[1].id)
    await book_class(memory_store, member.id, classes[1].id)
    await cancel_booking(memory_store, member.id, bookings[0].id)

    confirmed = [
        b for b in await memory_store.list_user_bookings(member.id)
        if b.status == BookingStatus.CONFIRMED
    ]
    assert await credits_of(memory_store, member.id) + len(confirmed) == 3
