"""
Pydantic schemas for profiles and credit balances.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from gym_booking.models.profile import UserRole


class ProfileRead(BaseModel):
    id: int
    email: str
    full_name: str
    role: UserRole
    credits: int = Field(..., ge=0)
    phone: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CreditGrant(BaseModel):
    amount: int = Field(..., gt=0, le=1000)
