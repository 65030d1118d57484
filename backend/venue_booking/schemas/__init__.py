from venue_booking.schemas.booking import (
    BookingCreate, BookingCreatedResponse, BookingListResponse, BookingResponse,
    ConflictCheckResponse, DeclinedBooking, StatusUpdate, StatusUpdateResponse,
)
from venue_booking.schemas.reservation_log import ReservationLogListResponse, ReservationLogResponse

__all__ = [
    "BookingCreate", "BookingCreatedResponse", "BookingListResponse", "BookingResponse",
    "ConflictCheckResponse", "DeclinedBooking", "StatusUpdate", "StatusUpdateResponse",
    "ReservationLogListResponse", "ReservationLogResponse",
]
