"""
Audit logger: append a confirmation log entry for every confirmed booking.

The booking's Confirmed status is the authoritative fact; the log is its
audit shadow. In best_effort mode the entry is written after the confirmation
commits, and a failed write is rolled back, logged as a StoreError and
reported to the caller without undoing the confirmation. In strict mode the
entry is written inside the confirm transaction instead (see
reservation_service), so both commit or neither does.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.exceptions import StoreError
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import audit_log_failures
from venue_booking.db.schema import missing_schema_element
from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.normalize import clean_optional_text, event_descriptor
from venue_booking.domain.status import BookingStatus
from venue_booking.models.booking import Booking
from venue_booking.models.reservation_log import ReservationLog

logger = get_logger(__name__)


@dataclass(frozen=True)
class BookingSnapshot:
    """Plain copy of a booking, safe to use after its session rolls back."""

    id: int
    customer_name: str
    email: str
    contact_number: str
    event_type: Optional[str]
    special_request: Optional[str]
    interval: DateInterval

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingSnapshot":
        return cls(
            id=booking.id,
            customer_name=booking.customer_name or "",
            email=booking.email or "",
            contact_number=booking.contact_number or "",
            event_type=event_descriptor(booking.event_type, booking.event_name),
            special_request=clean_optional_text(booking.special_request),
            interval=booking.interval,
        )


@dataclass
class AuditResult:
    logged: bool
    log_id: Optional[int] = None
    error: Optional[StoreError] = None


def local_now() -> datetime:
    """Confirmation instant as naive local wall-clock time, second precision."""
    return datetime.now().replace(microsecond=0)


def build_log_entry(
    snapshot: BookingSnapshot,
    confirmed_at: Optional[datetime] = None,
    confirmed_by: Optional[str] = None,
) -> ReservationLog:
    if snapshot.event_type is None:
        logger.warning("log_entry_without_event_type", booking_id=snapshot.id, customer=snapshot.customer_name)

    return ReservationLog(
        booking_id=snapshot.id,
        event_type=snapshot.event_type,
        # truncated to the log table's column widths
        customer_name=snapshot.customer_name[:100],
        email=snapshot.email[:100],
        contact_number=snapshot.contact_number[:20],
        special_request=snapshot.special_request,
        event_start_date=snapshot.interval.start,
        event_end_date=snapshot.interval.end,
        confirmed_at=confirmed_at or local_now(),
        confirmed_by=clean_optional_text(confirmed_by),
        status=BookingStatus.CONFIRMED.value,
    )


async def append_log_entry(
    db: AsyncSession,
    snapshot: BookingSnapshot,
    confirmed_by: Optional[str] = None,
) -> ReservationLog:
    """Insert the entry in the current transaction without committing."""
    entry = build_log_entry(snapshot, confirmed_by=confirmed_by)
    db.add(entry)
    await db.flush()
    return entry


async def log_confirmation(
    db: AsyncSession,
    snapshot: BookingSnapshot,
    confirmed_by: Optional[str] = None,
) -> AuditResult:
    """Append and commit the entry; a failure is reported, never raised."""
    try:
        entry = await append_log_entry(db, snapshot, confirmed_by)
        log_id = entry.log_id
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        error = StoreError(
            "Confirmation succeeded but its audit log entry could not be written.",
            source=ReservationLog.__tablename__,
            error=e,
        )
        audit_log_failures.inc()
        logger.error(
            "audit_log_failed",
            booking_id=snapshot.id,
            customer=snapshot.customer_name,
            interval=snapshot.interval.as_dict(),
            error=str(e),
        )
        return AuditResult(logged=False, error=error)

    logger.info(
        "reservation_logged",
        log_id=log_id,
        booking_id=snapshot.id,
        event_type=snapshot.event_type,
        interval=snapshot.interval.as_dict(),
    )
    return AuditResult(logged=True, log_id=log_id)


async def list_confirmation_log(db: AsyncSession) -> list[ReservationLog]:
    """Full snapshot of the log, newest confirmation first."""
    try:
        result = await db.execute(
            select(ReservationLog).order_by(ReservationLog.confirmed_at.desc(), ReservationLog.log_id.desc())
        )
    except DBAPIError as e:
        if missing_schema_element(e) == ReservationLog.__tablename__:
            logger.warning("confirmation_log_table_missing")
            await db.rollback()
            return []
        raise
    return list(result.scalars().all())
