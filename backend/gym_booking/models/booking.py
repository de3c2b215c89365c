"""
Booking model representing a member's spot in a class.

Key design decisions:
- Partial unique index: one *confirmed* booking per user per class, so a
  member can book again after cancelling
- Status field allows cancellation without deleting records
"""

import enum

from sqlalchemy import Column, Integer, String, ForeignKey, Index, CheckConstraint, text

from gym_booking.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=False, index=True)
    class_id = Column(Integer, ForeignKey("classes.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value)

    __table_args__ = (
        Index(
            "uq_bookings_user_class_confirmed",
            "user_id",
            "class_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
        # Capacity counts filter on (class_id, status)
        Index("ix_bookings_class_status", "class_id", "status"),
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'completed')", name="check_booking_status"
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, user={self.user_id}, class={self.class_id}, status={self.status})>"
