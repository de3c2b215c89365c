"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from gym_booking.api.routes import admin, bookings, classes, profile

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(classes.router)
api_router.include_router(bookings.router)
api_router.include_router(profile.router)
api_router.include_router(admin.router)
