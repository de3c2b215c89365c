from gym_booking.models.profile import Profile, UserRole
from gym_booking.models.class_schedule import ClassSchedule
from gym_booking.models.booking import Booking, BookingStatus

__all__ = ["Profile", "UserRole", "ClassSchedule", "Booking", "BookingStatus"]
