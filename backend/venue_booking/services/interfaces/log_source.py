"""
Confirmed entries of the confirmation log.

Consulted independently of the bookings table: once a slot has been promised
and logged, it stays taken even if the booking row is later edited or removed.
"""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.status import BookingStatus
from venue_booking.models.reservation_log import ReservationLog
from venue_booking.services.interfaces.conflict_source import Conflict, ConflictSource


class ConfirmationLogSource(ConflictSource):
    name = "event_reservation_logs"
    primary = False

    async def find_overlapping(
        self,
        db: AsyncSession,
        interval: DateInterval,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        query = (
            select(
                ReservationLog.log_id,
                ReservationLog.customer_name,
                ReservationLog.event_start_date,
                ReservationLog.event_end_date,
            )
            .where(
                ReservationLog.status == BookingStatus.CONFIRMED.value,
                ReservationLog.event_start_date <= interval.end,
                ReservationLog.event_end_date >= interval.start,
            )
            .order_by(ReservationLog.event_start_date, ReservationLog.log_id)
            .limit(1)
        )
        if exclude_booking_id is not None:
            query = query.where(
                or_(ReservationLog.booking_id.is_(None), ReservationLog.booking_id != exclude_booking_id)
            )

        row = (await db.execute(query)).first()
        if row is None:
            return None
        return Conflict(
            source=self.name,
            record_id=row.log_id,
            interval=DateInterval.from_values(row.event_start_date, row.event_end_date),
            customer_name=row.customer_name,
        )
