"""
Booking store interface.
Allows swapping the backing store without changing booking logic.
"""

from abc import ABC, abstractmethod
from typing import Optional

from gym_booking.models.booking import BookingStatus
from gym_booking.schemas.booking import BookingRead
from gym_booking.schemas.class_schedule import ClassAvailability, ClassCreate, ClassScheduleRead
from gym_booking.schemas.profile import ProfileRead


class BookingStore(ABC):
    """
    Interface over the profile, class and booking stores.

    Implementations:
    - SqlBookingStore: SQLAlchemy session, atomic paths run in one DB transaction
    - InMemoryBookingStore: dict-backed, serialized by an asyncio lock

    Infrastructure failures surface as StoreError. Stores that set
    `supports_atomic_booking` must implement `atomic_book_class` and
    `atomic_cancel_booking`; the booking service picks its strategy from
    the flag alone.
    """

    supports_atomic_booking: bool = False

    # Profiles

    @abstractmethod
    async def get_profile(self, user_id: int) -> Optional[ProfileRead]:
        pass

    @abstractmethod
    async def update_credits(self, user_id: int, credits: int) -> None:
        """Set the credit balance to `credits`."""
        pass

    @abstractmethod
    async def grant_credits(self, user_id: int, amount: int) -> Optional[ProfileRead]:
        """Add `amount` credits in a single store-side update. None if the user is unknown."""
        pass

    # Classes

    @abstractmethod
    async def get_class(self, class_id: int) -> Optional[ClassScheduleRead]:
        pass

    @abstractmethod
    async def insert_class(self, data: ClassCreate) -> ClassScheduleRead:
        pass

    @abstractmethod
    async def list_classes(
        self, page: int, page_size: int, upcoming_only: bool
    ) -> tuple[list[ClassAvailability], int]:
        """Classes ordered by start time with their confirmed-booking counts."""
        pass

    # Bookings

    @abstractmethod
    async def count_confirmed_bookings(self, class_id: int) -> int:
        pass

    @abstractmethod
    async def find_confirmed_booking(self, user_id: int, class_id: int) -> Optional[BookingRead]:
        pass

    @abstractmethod
    async def insert_booking(self, user_id: int, class_id: int) -> BookingRead:
        """
        Insert a confirmed booking.

        Raises:
            DuplicateBooking: the user already holds a confirmed booking for the class
        """
        pass

    @abstractmethod
    async def delete_booking(self, booking_id: int) -> None:
        """Hard delete. Only used to compensate a failed credit debit."""
        pass

    @abstractmethod
    async def get_booking(self, booking_id: int, user_id: int) -> Optional[BookingRead]:
        """The booking if it belongs to `user_id` and is still confirmed."""
        pass

    @abstractmethod
    async def update_booking_status(
        self,
        booking_id: int,
        status: BookingStatus,
        expected: Optional[BookingStatus] = None,
    ) -> BookingRead:
        """
        Set the booking status. With `expected`, only moves a booking that is
        currently in that status and raises BookingNotFound otherwise.
        """
        pass

    @abstractmethod
    async def list_user_bookings(self, user_id: int) -> list[BookingRead]:
        pass

    # Atomic units of work

    async def atomic_book_class(self, user_id: int, class_id: int) -> BookingRead:
        """
        Re-check credits, capacity and duplicates, insert the booking and
        debit one credit as a single indivisible operation.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support atomic booking")

    async def atomic_cancel_booking(self, user_id: int, booking_id: int) -> BookingRead:
        """Cancel a confirmed booking and refund one credit indivisibly."""
        raise NotImplementedError(f"{type(self).__name__} does not support atomic booking")
