"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from pydantic import BaseModel

from gym_booking.models.booking import BookingStatus


class BookingCreate(BaseModel):
    class_id: int


class BookingRead(BaseModel):
    id: int
    user_id: int
    class_id: int
    status: BookingStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


BookingResponse = BookingRead


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    status: BookingStatus
