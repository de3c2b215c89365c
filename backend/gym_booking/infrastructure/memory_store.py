"""
In-memory booking store.

Every operation takes the store lock, so each call is atomic on its own the
way a single request to a remote store is. The atomic units of work hold
the lock for all of their checks and writes. Operations yield to the event
loop before locking so concurrent callers genuinely interleave between
calls.

Mirrors the database constraints: non-negative credits and one confirmed
booking per (user, class).
"""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Optional

from gym_booking.core.errors import (
    BookingNotFound,
    ClassFull,
    ClassNotFound,
    DuplicateBooking,
    InsufficientCredits,
    StoreError,
    UserNotFound,
)
from gym_booking.models.booking import BookingStatus
from gym_booking.models.profile import UserRole
from gym_booking.schemas.booking import BookingRead
from gym_booking.schemas.class_schedule import ClassAvailability, ClassCreate, ClassScheduleRead
from gym_booking.schemas.profile import ProfileRead
from gym_booking.services.interfaces.store import BookingStore


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryBookingStore(BookingStore):

    def __init__(self, atomic: bool = True):
        self.supports_atomic_booking = atomic
        self._lock = asyncio.Lock()
        self._profiles: dict[int, ProfileRead] = {}
        self._classes: dict[int, ClassScheduleRead] = {}
        self._bookings: dict[int, BookingRead] = {}
        self._profile_ids = itertools.count(1)
        self._class_ids = itertools.count(1)
        self._booking_ids = itertools.count(1)

    async def _acquire(self):
        await asyncio.sleep(0)
        await self._lock.acquire()

    def add_profile(
        self,
        email: str,
        full_name: str,
        credits: int = 0,
        role: UserRole = UserRole.MEMBER,
    ) -> ProfileRead:
        """Seed a profile. Signup lives outside this service."""
        now = _now()
        profile = ProfileRead(
            id=next(self._profile_ids),
            email=email,
            full_name=full_name,
            role=role,
            credits=credits,
            created_at=now,
            updated_at=now,
        )
        self._profiles[profile.id] = profile
        return profile

    # Lock-free helpers; callers hold the lock

    def _confirmed(self, class_id: int) -> list[BookingRead]:
        return [
            b for b in self._bookings.values()
            if b.class_id == class_id and b.status == BookingStatus.CONFIRMED
        ]

    def _find_confirmed(self, user_id: int, class_id: int) -> Optional[BookingRead]:
        for booking in self._confirmed(class_id):
            if booking.user_id == user_id:
                return booking
        return None

    def _set_credits(self, user_id: int, credits: int) -> ProfileRead:
        profile = self._profiles.get(user_id)
        if profile is None:
            raise UserNotFound()
        if credits < 0:
            raise StoreError("update_credits", "credits must not go negative")
        updated = profile.model_copy(update={"credits": credits, "updated_at": _now()})
        self._profiles[user_id] = updated
        return updated

    def _insert_booking(self, user_id: int, class_id: int) -> BookingRead:
        if self._find_confirmed(user_id, class_id) is not None:
            raise DuplicateBooking()
        now = _now()
        booking = BookingRead(
            id=next(self._booking_ids),
            user_id=user_id,
            class_id=class_id,
            status=BookingStatus.CONFIRMED,
            created_at=now,
            updated_at=now,
        )
        self._bookings[booking.id] = booking
        return booking

    def _set_status(
        self,
        booking_id: int,
        status: BookingStatus,
        expected: Optional[BookingStatus] = None,
    ) -> BookingRead:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound()
        if expected is not None and booking.status != expected:
            raise BookingNotFound()
        updated = booking.model_copy(update={"status": status, "updated_at": _now()})
        self._bookings[booking_id] = updated
        return updated

    # Profiles

    async def get_profile(self, user_id: int) -> Optional[ProfileRead]:
        await self._acquire()
        try:
            return self._profiles.get(user_id)
        finally:
            self._lock.release()

    async def update_credits(self, user_id: int, credits: int) -> None:
        await self._acquire()
        try:
            self._set_credits(user_id, credits)
        finally:
            self._lock.release()

    async def grant_credits(self, user_id: int, amount: int) -> Optional[ProfileRead]:
        await self._acquire()
        try:
            profile = self._profiles.get(user_id)
            if profile is None:
                return None
            return self._set_credits(user_id, profile.credits + amount)
        finally:
            self._lock.release()

    # Classes

    async def get_class(self, class_id: int) -> Optional[ClassScheduleRead]:
        await self._acquire()
        try:
            return self._classes.get(class_id)
        finally:
            self._lock.release()

    async def insert_class(self, data: ClassCreate) -> ClassScheduleRead:
        await self._acquire()
        try:
            class_schedule = ClassScheduleRead(
                id=next(self._class_ids),
                created_at=_now(),
                **data.model_dump(),
            )
            self._classes[class_schedule.id] = class_schedule
            return class_schedule
        finally:
            self._lock.release()

    async def list_classes(
        self, page: int, page_size: int, upcoming_only: bool
    ) -> tuple[list[ClassAvailability], int]:
        await self._acquire()
        try:
            classes = sorted(self._classes.values(), key=lambda c: (c.start_time, c.id))
            if upcoming_only:
                now = _now()
                classes = [c for c in classes if c.start_time >= now]
            start = (page - 1) * page_size
            window = [
                ClassAvailability(**c.model_dump(), confirmed_count=len(self._confirmed(c.id)))
                for c in classes[start:start + page_size]
            ]
            return window, len(classes)
        finally:
            self._lock.release()

    # Bookings

    async def count_confirmed_bookings(self, class_id: int) -> int:
        await self._acquire()
        try:
            return len(self._confirmed(class_id))
        finally:
            self._lock.release()

    async def find_confirmed_booking(self, user_id: int, class_id: int) -> Optional[BookingRead]:
        await self._acquire()
        try:
            return self._find_confirmed(user_id, class_id)
        finally:
            self._lock.release()

    async def insert_booking(self, user_id: int, class_id: int) -> BookingRead:
        await self._acquire()
        try:
            return self._insert_booking(user_id, class_id)
        finally:
            self._lock.release()

    async def delete_booking(self, booking_id: int) -> None:
        await self._acquire()
        try:
            self._bookings.pop(booking_id, None)
        finally:
            self._lock.release()

    async def get_booking(self, booking_id: int, user_id: int) -> Optional[BookingRead]:
        await self._acquire()
        try:
            booking = self._bookings.get(booking_id)
            if booking is None or booking.user_id != user_id:
                return None
            if booking.status != BookingStatus.CONFIRMED:
                return None
            return booking
        finally:
            self._lock.release()

    async def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        expected: Optional[BookingStatus] = None,
    ) -> BookingRead:
        await self._acquire()
        try:
            return self._set_status(booking_id, status, expected)
        finally:
            self._lock.release()

    async def list_user_bookings(self, user_id: int) -> list[BookingRead]:
        await self._acquire()
        try:
            bookings = [b for b in self._bookings.values() if b.user_id == user_id]
            return sorted(bookings, key=lambda b: (b.created_at, b.id), reverse=True)
        finally:
            self._lock.release()

    # Atomic units of work

    async def atomic_book_class(self, user_id: int, class_id: int) -> BookingRead:
        await self._acquire()
        try:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise UserNotFound()
            if profile.credits <= 0:
                raise InsufficientCredits()
            class_schedule = self._classes.get(class_id)
            if class_schedule is None:
                raise ClassNotFound()
            if len(self._confirmed(class_id)) >= class_schedule.capacity:
                raise ClassFull(class_schedule.title)
            booking = self._insert_booking(user_id, class_id)
            self._set_credits(user_id, profile.credits - 1)
            return booking
        finally:
            self._lock.release()

    async def atomic_cancel_booking(self, user_id: int, booking_id: int) -> BookingRead:
        await self._acquire()
        try:
            booking = self._bookings.get(booking_id)
            if (
                booking is None
                or booking.user_id != user_id
                or booking.status != BookingStatus.CONFIRMED
            ):
                raise BookingNotFound()
            profile = self._profiles.get(user_id)
            if profile is None:
                raise UserNotFound()
            cancelled = self._set_status(booking_id, BookingStatus.CANCELLED)
            self._set_credits(user_id, profile.credits + 1)
            return cancelled
        finally:
            self._lock.release()
