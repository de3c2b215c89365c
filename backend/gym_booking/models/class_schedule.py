"""
Bookable class session (CrossFit, Yoga, Spinning...).

Capacity is fixed at creation; availability is derived from the number of
confirmed bookings rather than stored.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, CheckConstraint

from gym_booking.db.base import Base, TimestampMixin


class ClassSchedule(Base, TimestampMixin):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    coach_id = Column(Integer, ForeignKey("profiles.id"), nullable=True)
    capacity = Column(Integer, nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(255), nullable=True)

    __table_args__ = (
        CheckConstraint("capacity > 0", name="check_class_capacity_positive"),
        CheckConstraint("end_time > start_time", name="check_class_time_range"),
        # Upcoming-class listings are always filtered and sorted by start time
        Index("ix_classes_start_time", "start_time"),
    )

    def __repr__(self) -> str:
        return f"<ClassSchedule(id={self.id}, title={self.title}, capacity={self.capacity})>"
