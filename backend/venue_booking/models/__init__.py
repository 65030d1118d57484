from venue_booking.models.booking import Booking
from venue_booking.models.reservation_log import ReservationLog
from venue_booking.models.venue import Venue

__all__ = ["Booking", "ReservationLog", "Venue"]
