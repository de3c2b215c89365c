from gym_booking.schemas.profile import ProfileRead, CreditGrant
from gym_booking.schemas.class_schedule import (
    ClassCreate, ClassScheduleRead, ClassAvailability, ClassResponse, ClassListResponse,
)
from gym_booking.schemas.booking import BookingCreate, BookingRead, BookingResponse, BookingCancelResponse

__all__ = [
    "ProfileRead", "CreditGrant",
    "ClassCreate", "ClassScheduleRead", "ClassAvailability", "ClassResponse", "ClassListResponse",
    "BookingCreate", "BookingRead", "BookingResponse", "BookingCancelResponse",
]
