"""
Conflict source interface.
A source answers one question: which Confirmed record, if any, already holds
some day of the candidate interval.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.domain.intervals import DateInterval


@dataclass(frozen=True)
class Conflict:
    source: str
    record_id: int
    interval: DateInterval
    customer_name: Optional[str] = None


class ConflictSource(ABC):
    """
    Interface for places a confirmed reservation can be recorded.

    Implementations:
    - ActiveBookingSource: Confirmed rows of the bookings table (primary)
    - ConfirmationLogSource: the append-only confirmation log (secondary)

    A primary source failing aborts the check. A secondary source failing
    degrades the check unless strict consistency is configured.
    """

    name: str = "source"
    primary: bool = False

    @abstractmethod
    async def find_overlapping(
        self,
        db: AsyncSession,
        interval: DateInterval,
        exclude_booking_id: Optional[int] = None,
    ) -> Optional[Conflict]:
        """
        Return the first Confirmed record overlapping `interval`.

        Args:
            db: Session the query runs in
            interval: Candidate dates
            exclude_booking_id: Booking being re-checked against its competitors

        Returns:
            A Conflict, or None when the source holds no overlapping record
        """
        pass
