"""
SQLAlchemy-backed booking store.

ATOMIC BOOKING
==============

`atomic_book_class` runs every check and both writes in one transaction:

  1. SELECT ... FOR UPDATE on the class row, then on the profile row
     (always in that order, so two bookers cannot deadlock)
  2. Re-check credits, capacity (COUNT of confirmed bookings) and duplicates
  3. INSERT the booking and decrement the profile's credits
  4. COMMIT

Concurrent bookers of the same class queue on the class row lock, so the
capacity count each of them sees already includes the winners before them.
The CHECK constraint on credits and the partial unique index on confirmed
(user, class) pairs are the final safety net.

SQLite ignores FOR UPDATE but serializes writers on its database lock.

Every other method is its own small unit of work (committed on return),
which is what the sequential fallback in the booking service composes.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gym_booking.core.errors import (
    BookingError,
    BookingNotFound,
    ClassFull,
    ClassNotFound,
    DuplicateBooking,
    InsufficientCredits,
    StoreError,
    UserNotFound,
)
from gym_booking.core.logging import get_logger
from gym_booking.core.metrics import record_store_operation
from gym_booking.db.base import utcnow
from gym_booking.models.booking import Booking, BookingStatus
from gym_booking.models.class_schedule import ClassSchedule
from gym_booking.models.profile import Profile
from gym_booking.schemas.booking import BookingRead
from gym_booking.schemas.class_schedule import ClassAvailability, ClassCreate, ClassScheduleRead
from gym_booking.schemas.profile import ProfileRead
from gym_booking.services.interfaces.store import BookingStore

logger = get_logger(__name__)


class SqlBookingStore(BookingStore):

    def __init__(self, db: AsyncSession, atomic: bool = True):
        self.db = db
        self.supports_atomic_booking = atomic

    @asynccontextmanager
    async def _operation(self, name: str, commit: bool = False):
        """Roll back on any failure and translate driver errors into StoreError."""
        try:
            yield
            if commit:
                await self.db.commit()
        except BookingError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            record_store_operation(name, ok=False)
            logger.error("store_operation_failed", operation=name, error=str(e))
            raise StoreError(name) from e
        record_store_operation(name, ok=True)

    async def _fetch(self, stmt):
        # Rows may have changed in another session since they were loaded
        return await self.db.execute(stmt.execution_options(populate_existing=True))

    async def _count_confirmed(self, class_id: int) -> int:
        result = await self.db.execute(
            select(func.count(Booking.id)).where(
                Booking.class_id == class_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        return result.scalar_one()

    async def _find_confirmed(self, user_id: int, class_id: int) -> Optional[Booking]:
        result = await self._fetch(
            select(Booking).where(
                Booking.user_id == user_id,
                Booking.class_id == class_id,
                Booking.status == BookingStatus.CONFIRMED.value,
            )
        )
        return result.scalars().first()

    async def _flush_new_booking(self) -> None:
        try:
            await self.db.flush()
        except IntegrityError as e:
            if "unique" not in str(e.orig).lower():
                raise
            # Lost a race against another booking for the same (user, class)
            logger.info("booking_unique_violation", error=str(e.orig))
            raise DuplicateBooking() from e

    # Profiles

    async def get_profile(self, user_id: int) -> Optional[ProfileRead]:
        async with self._operation("get_profile"):
            result = await self._fetch(select(Profile).where(Profile.id == user_id))
            profile = result.scalar_one_or_none()
            return ProfileRead.model_validate(profile) if profile else None

    async def update_credits(self, user_id: int, credits: int) -> None:
        async with self._operation("update_credits", commit=True):
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(credits=credits, updated_at=utcnow())
            )
            if result.rowcount == 0:
                raise UserNotFound()

    async def grant_credits(self, user_id: int, amount: int) -> Optional[ProfileRead]:
        async with self._operation("grant_credits", commit=True):
            result = await self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(credits=Profile.credits + amount, updated_at=utcnow())
            )
            if result.rowcount == 0:
                return None
            refreshed = await self._fetch(
                select(Profile).where(Profile.id == user_id)
            )
            profile = ProfileRead.model_validate(refreshed.scalar_one())
        return profile

    # Classes

    async def get_class(self, class_id: int) -> Optional[ClassScheduleRead]:
        async with self._operation("get_class"):
            result = await self._fetch(select(ClassSchedule).where(ClassSchedule.id == class_id))
            class_schedule = result.scalar_one_or_none()
            return ClassScheduleRead.model_validate(class_schedule) if class_schedule else None

    async def insert_class(self, data: ClassCreate) -> ClassScheduleRead:
        async with self._operation("insert_class", commit=True):
            class_schedule = ClassSchedule(**data.model_dump())
            self.db.add(class_schedule)
            await self.db.flush()
            created = ClassScheduleRead.model_validate(class_schedule)
        return created

    async def list_classes(
        self, page: int, page_size: int, upcoming_only: bool
    ) -> tuple[list[ClassAvailability], int]:
        async with self._operation("list_classes"):
            confirmed = (
                select(Booking.class_id, func.count(Booking.id).label("confirmed_count"))
                .where(Booking.status == BookingStatus.CONFIRMED.value)
                .group_by(Booking.class_id)
                .subquery()
            )
            query = select(
                ClassSchedule, func.coalesce(confirmed.c.confirmed_count, 0)
            ).outerjoin(confirmed, confirmed.c.class_id == ClassSchedule.id)
            count_query = select(func.count(ClassSchedule.id))

            if upcoming_only:
                now = datetime.now(timezone.utc)
                query = query.where(ClassSchedule.start_time >= now)
                count_query = count_query.where(ClassSchedule.start_time >= now)

            total = (await self.db.execute(count_query)).scalar_one()
            rows = (
                await self._fetch(
                    query.order_by(ClassSchedule.start_time.asc(), ClassSchedule.id.asc())
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
            ).all()

            classes = [
                ClassAvailability(
                    **ClassScheduleRead.model_validate(class_schedule).model_dump(),
                    confirmed_count=confirmed_count,
                )
                for class_schedule, confirmed_count in rows
            ]
        return classes, total

    # Bookings

    async def count_confirmed_bookings(self, class_id: int) -> int:
        async with self._operation("count_confirmed_bookings"):
            return await self._count_confirmed(class_id)

    async def find_confirmed_booking(self, user_id: int, class_id: int) -> Optional[BookingRead]:
        async with self._operation("find_confirmed_booking"):
            booking = await self._find_confirmed(user_id, class_id)
            return BookingRead.model_validate(booking) if booking else None

    async def insert_booking(self, user_id: int, class_id: int) -> BookingRead:
        async with self._operation("insert_booking", commit=True):
            booking = Booking(
                user_id=user_id,
                class_id=class_id,
                status=BookingStatus.CONFIRMED.value,
            )
            self.db.add(booking)
            await self._flush_new_booking()
            created = BookingRead.model_validate(booking)
        return created

    async def delete_booking(self, booking_id: int) -> None:
        async with self._operation("delete_booking", commit=True):
            await self.db.execute(delete(Booking).where(Booking.id == booking_id))

    async def get_booking(self, booking_id: int, user_id: int) -> Optional[BookingRead]:
        async with self._operation("get_booking"):
            result = await self._fetch(
                select(Booking).where(
                    Booking.id == booking_id,
                    Booking.user_id == user_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
            )
            booking = result.scalar_one_or_none()
            return BookingRead.model_validate(booking) if booking else None

    async def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        expected: Optional[BookingStatus] = None,
    ) -> BookingRead:
        async with self._operation("update_booking_status", commit=True):
            stmt = update(Booking).where(Booking.id == booking_id)
            if expected is not None:
                # Compare-and-set: concurrent transitions of one booking have a single winner
                stmt = stmt.where(Booking.status == expected.value)
            result = await self.db.execute(
                stmt.values(status=status.value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise BookingNotFound()
            refreshed = await self._fetch(select(Booking).where(Booking.id == booking_id))
            updated = BookingRead.model_validate(refreshed.scalar_one())
        return updated

    async def list_user_bookings(self, user_id: int) -> list[BookingRead]:
        async with self._operation("list_user_bookings"):
            result = await self._fetch(
                select(Booking)
                .where(Booking.user_id == user_id)
                .order_by(Booking.created_at.desc(), Booking.id.desc())
            )
            return [BookingRead.model_validate(b) for b in result.scalars().all()]

    # Atomic units of work

    async def atomic_book_class(self, user_id: int, class_id: int) -> BookingRead:
        async with self._operation("atomic_book_class", commit=True):
            class_result = await self._fetch(
                select(ClassSchedule).where(ClassSchedule.id == class_id).with_for_update()
            )
            class_schedule = class_result.scalar_one_or_none()
            profile_result = await self._fetch(
                select(Profile)
                .where(Profile.id == user_id)
                .with_for_update()
            )
            profile = profile_result.scalar_one_or_none()

            if profile is None:
                raise UserNotFound()
            if profile.credits <= 0:
                raise InsufficientCredits()
            if class_schedule is None:
                raise ClassNotFound()
            if await self._count_confirmed(class_id) >= class_schedule.capacity:
                raise ClassFull(class_schedule.title)
            if await self._find_confirmed(user_id, class_id) is not None:
                raise DuplicateBooking()

            booking = Booking(
                user_id=user_id,
                class_id=class_id,
                status=BookingStatus.CONFIRMED.value,
            )
            self.db.add(booking)
            profile.credits = profile.credits - 1
            profile.updated_at = utcnow()
            await self._flush_new_booking()
            created = BookingRead.model_validate(booking)
        return created

    async def atomic_cancel_booking(self, user_id: int, booking_id: int) -> BookingRead:
        async with self._operation("atomic_cancel_booking", commit=True):
            result = await self._fetch(
                select(Booking)
                .where(
                    Booking.id == booking_id,
                    Booking.user_id == user_id,
                    Booking.status == BookingStatus.CONFIRMED.value,
                )
                .with_for_update()
            )
            booking = result.scalar_one_or_none()
            if booking is None:
                raise BookingNotFound()

            booking.status = BookingStatus.CANCELLED.value
            booking.updated_at = utcnow()
            refund = await self.db.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(credits=Profile.credits + 1, updated_at=utcnow())
            )
            if refund.rowcount == 0:
                raise UserNotFound()
            await self.db.flush()
            cancelled = BookingRead.model_validate(booking)
        return cancelled
