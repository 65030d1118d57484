"""
Conflict resolver: is any day of a candidate interval already promised?

CONSISTENCY MODES
=================

Two records of truth can hold a confirmation: the bookings table and the
confirmation log. Every source is queried before "no conflict" is declared,
and the first conflict wins in source order (active bookings before the log),
because a live booking row is the more actionable thing to show a caller.

The bookings table is primary: if it cannot be queried the request fails
with StoreError. The log is secondary and its query runs inside a SAVEPOINT
so a failure there does not poison the surrounding transaction.

  best_effort (default): a failing secondary source is skipped, logged and
    reported on the result as a degraded check. The primary operation goes on.
  strict: a failing secondary source fails the request.

Trade-off: best_effort can let a confirm through that only the log would
have caught. The ConflictCheck result makes that visible instead of hiding it.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.config import get_settings
from venue_booking.core.exceptions import BookingConflictError, StoreError
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import record_degraded_check
from venue_booking.domain.intervals import DateInterval
from venue_booking.services.interfaces import (
    ActiveBookingSource,
    Conflict,
    ConfirmationLogSource,
    ConflictSource,
)

logger = get_logger(__name__)
settings = get_settings()

CHECKED = "checked"
DEGRADED = "degraded"

DEFAULT_SOURCES: tuple[ConflictSource, ...] = (ActiveBookingSource(), ConfirmationLogSource())


@dataclass
class ConflictCheck:
    conflict: Optional[Conflict] = None
    degraded_sources: list[str] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    @property
    def status(self) -> str:
        return DEGRADED if self.degraded_sources else CHECKED

    @property
    def has_conflict(self) -> bool:
        return self.conflict is not None

    def as_dict(self) -> dict:
        return {
            "status": self.status,
            "degraded_sources": list(self.degraded_sources),
            "reasons": list(self.reasons),
        }


async def find_confirmed_overlap(
    db: AsyncSession,
    interval: DateInterval,
    exclude_booking_id: Optional[int] = None,
    sources: Optional[Sequence[ConflictSource]] = None,
) -> ConflictCheck:
    """Query every source for a Confirmed record overlapping `interval`."""
    check = ConflictCheck()

    for source in sources or DEFAULT_SOURCES:
        try:
            if source.primary:
                conflict = await source.find_overlapping(db, interval, exclude_booking_id)
            else:
                async with db.begin_nested():
                    conflict = await source.find_overlapping(db, interval, exclude_booking_id)
        except SQLAlchemyError as e:
            if source.primary or settings.strict_consistency:
                logger.error("conflict_source_failed", source=source.name, error=str(e))
                raise StoreError(
                    f"Could not check {source.name} for conflicting reservations.",
                    source=source.name,
                    error=e,
                )
            logger.warning(
                "conflict_source_degraded",
                source=source.name,
                error=str(e),
                interval=interval.as_dict(),
            )
            record_degraded_check(source.name)
            check.degraded_sources.append(source.name)
            check.reasons.append(f"{source.name}: {e}")
            continue

        if conflict is not None and check.conflict is None:
            check.conflict = conflict

    if check.conflict is not None:
        logger.info(
            "conflict_detected",
            requested=interval.as_dict(),
            conflicting=check.conflict.interval.as_dict(),
            source=check.conflict.source,
            customer=check.conflict.customer_name,
        )
    return check


def conflict_error(conflict: Conflict, confirming: bool = False) -> BookingConflictError:
    """Build the 409 shown to the caller, with the taken dates spelled out."""
    date_range = conflict.interval.display()
    if confirming:
        message = (
            "Cannot confirm this reservation. There is already a confirmed event "
            f"reservation on {date_range}. Please decline this reservation or choose different dates."
        )
    else:
        message = (
            f"This date is already booked. A confirmed event reservation exists on {date_range}. "
            "Please choose different dates."
        )
    return BookingConflictError(message, conflict)
