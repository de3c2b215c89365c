"""
Profile model: a gym account and its class-credit balance.

Key design decisions:
- `credits` is the consumable balance spent by bookings
- CHECK constraint keeps the balance non-negative even if two writers race
"""

import enum

from sqlalchemy import Column, Integer, String, CheckConstraint

from gym_booking.db.base import Base, TimestampMixin


class UserRole(str, enum.Enum):
    MEMBER = "member"
    ADMIN = "admin"
    COACH = "coach"


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.MEMBER.value)
    credits = Column(Integer, nullable=False, default=0)
    phone = Column(String(50), nullable=True)

    __table_args__ = (
        CheckConstraint("credits >= 0", name="check_profile_credits_non_negative"),
        CheckConstraint("role IN ('member', 'admin', 'coach')", name="check_profile_role"),
    )

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, email={self.email}, credits={self.credits})>"
