"""
Booking model: one mutable row per reservation request for the venue.

Key design decisions:
- Interval stored as SQL DATE columns, so comparisons never involve timezones
- status is nullable; legacy rows with NULL are read as Pending
- Index on (status, event_start_date, event_end_date) serves the overlap queries
"""

from sqlalchemy import Column, Date, Index, Integer, String, Text

from venue_booking.db.base import Base, TimestampMixin
from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.normalize import event_descriptor
from venue_booking.domain.status import BookingStatus, coerce_status


class Booking(Base, TimestampMixin):
    __tablename__ = "event_bookings"

    id = Column(Integer, primary_key=True, index=True)
    customer_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False)
    contact_number = Column(String(20), nullable=False)
    event_type = Column(String(255), nullable=True)
    event_name = Column(String(255), nullable=True)
    special_request = Column(Text, nullable=True)
    event_start_date = Column(Date, nullable=False)
    event_end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=True, default=BookingStatus.PENDING.value,
                    server_default=BookingStatus.PENDING.value)

    __table_args__ = (
        Index("ix_event_bookings_status_dates", "status", "event_start_date", "event_end_date"),
    )

    @property
    def interval(self) -> DateInterval:
        return DateInterval.from_values(self.event_start_date, self.event_end_date)

    @property
    def current_status(self) -> BookingStatus:
        return coerce_status(self.status)

    @property
    def descriptor(self):
        return event_descriptor(self.event_type, self.event_name)

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, customer={self.customer_name}, "
            f"{self.event_start_date}..{self.event_end_date}, status={self.status})>"
        )
