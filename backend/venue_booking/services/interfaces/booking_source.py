"""
Confirmed rows of the live bookings table.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.status import BookingStatus
from venue_booking.models.booking import Booking
from venue_booking.services.interfaces.conflict_source import Conflict, ConflictSource


class ActiveBookingSource(ConflictSource):
    name = "event_bookings"
    primary = True

    async def find_overlapping(
        self,
        db: AsyncSession,
        interval: DateInterval,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        query = (
            select(Booking.id, Booking.customer_name, Booking.event_start_date, Booking.event_end_date)
            .where(
                Booking.status == BookingStatus.CONFIRMED.value,
                Booking.event_start_date <= interval.end,
                Booking.event_end_date >= interval.start,
            )
            .order_by(Booking.event_start_date, Booking.id)
            .limit(1)
        )
        if exclude_booking_id is not None:
            query = query.where(Booking.id != exclude_booking_id)

        row = (await db.execute(query)).first()
        if row is None:
            return None
        return Conflict(
            source=self.name,
            record_id=row.id,
            interval=DateInterval.from_values(row.event_start_date, row.event_end_date),
            customer_name=row.customer_name,
        )
