"""
Pydantic schemas for class schedule request/response validation.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field, field_validator, model_validator


class ClassCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    coach_id: Optional[int] = None
    capacity: int = Field(..., gt=0, le=500)
    start_time: datetime
    end_time: datetime
    location: Optional[str] = Field(None, max_length=255)

    @field_validator("start_time", "end_time")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Naive datetimes from forms are treated as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_time_range(self) -> "ClassCreate":
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class ClassScheduleRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    coach_id: Optional[int] = None
    capacity: int = Field(..., gt=0)
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ClassAvailability(ClassScheduleRead):
    confirmed_count: int = 0

    @property
    def spots_left(self) -> int:
        return max(self.capacity - self.confirmed_count, 0)


class ClassResponse(ClassScheduleRead):
    confirmed_count: int
    spots_left: int

    @classmethod
    def from_availability(cls, availability: ClassAvailability) -> "ClassResponse":
        return cls(**availability.model_dump(), spots_left=availability.spots_left)


class ClassListResponse(BaseModel):
    classes: list[ClassResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
