"""
Confirmation log: append-only audit shadow of every confirmed booking.

Rows are never updated or deleted. booking_id is a plain column rather than a
foreign key because an entry must outlive edits to, or removal of, the
booking it came from.
"""

from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Text

from venue_booking.db.base import Base
from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.status import BookingStatus


class ReservationLog(Base):
    __tablename__ = "event_reservation_logs"

    log_id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String(255), nullable=True)
    customer_name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, server_default="")
    contact_number = Column(String(20), nullable=False, server_default="")
    special_request = Column(Text, nullable=True)
    event_start_date = Column(Date, nullable=False)
    event_end_date = Column(Date, nullable=False)
    confirmed_at = Column(DateTime(timezone=False), nullable=False)
    confirmed_by = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value,
                    server_default=BookingStatus.CONFIRMED.value)

    __table_args__ = (
        Index("ix_event_reservation_logs_dates", "event_start_date", "event_end_date"),
        Index("ix_event_reservation_logs_confirmed_at", "confirmed_at"),
    )

    @property
    def interval(self) -> DateInterval:
        return DateInterval.from_values(self.event_start_date, self.event_end_date)

    def __repr__(self) -> str:
        return f"<ReservationLog(log_id={self.log_id}, booking={self.booking_id}, customer={self.customer_name})>"
