"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from venue_booking.api.routes import event_bookings

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(event_bookings.router)
