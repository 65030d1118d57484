"""
Reservation state machine for the venue.

CONCURRENCY STRATEGY: Optimistic Locking on the Venue Row
==========================================================

Problem:
  Two Pending bookings for overlapping dates are confirmed at the same time.
  Both conflict checks see no Confirmed booking, both commit.
  Result: the venue is promised twice.

Solution:
  The venue is a single row with a `version` column. Confirm runs as one
  transaction:

  1. Read the venue's current version
  2. Run the conflict resolver (excluding the booking being confirmed)
  3. UPDATE venues SET version = version + 1
     WHERE id = 1 AND version = :read_version
  4. UPDATE event_bookings SET status = 'Confirmed'
     WHERE id = :id AND status is Pending/NULL
  5. COMMIT

  If step 3 or 4 touches no row, another confirm committed in between:
  roll back and retry from step 1, which now sees that confirmation.
  Only check-then-commit is atomic. The audit log entry and the cascade run
  afterwards and can only leave stale Pending rows behind, never a second
  Confirmed one.

Transitions:
  Pending -> Confirmed   conflict check, commit, audit log, cascade decline
  Pending -> Cancelled   direct commit
  X -> X (terminal)      accepted as a no-op
  anything else          InvalidTransitionError
"""

import time
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.config import get_settings
from venue_booking.core.exceptions import (
    BookingContentionError,
    BookingNotFoundError,
    BookingValidationError,
    InvalidTransitionError,
    StoreError,
)
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import (
    auto_declined,
    cascade_failures,
    confirm_latency,
    optimistic_lock_retries,
    record_booking_attempt,
    record_transition,
)
from venue_booking.domain.intervals import DateInterval
from venue_booking.domain.normalize import clean_optional_text, event_descriptor
from venue_booking.domain.status import BookingStatus, can_transition, is_noop
from venue_booking.models.booking import Booking
from venue_booking.models.venue import VENUE_ID, Venue
from venue_booking.schemas.booking import BookingCreate
from venue_booking.services.audit_service import (
    AuditResult,
    BookingSnapshot,
    append_log_entry,
    log_confirmation,
)
from venue_booking.services.conflict_resolver import ConflictCheck, conflict_error, find_confirmed_overlap

logger = get_logger(__name__)
settings = get_settings()

REQUIRED_FIELDS = ("customer_name", "email", "contact_number", "event_start_date", "event_end_date")


@dataclass
class CreateResult:
    booking: Booking
    conflict_check: ConflictCheck


@dataclass
class DeclinedBooking:
    id: int
    customer: Optional[str]


@dataclass
class CascadeResult:
    declined_count: int = 0
    declined: list[DeclinedBooking] = field(default_factory=list)
    error: Optional[StoreError] = None


@dataclass
class TransitionResult:
    booking_id: int
    status: BookingStatus
    status_updated: bool
    declined_count: int = 0
    declined: list[DeclinedBooking] = field(default_factory=list)
    audit: Optional[AuditResult] = None
    cascade_error: Optional[StoreError] = None
    conflict_check: Optional[ConflictCheck] = None

    @property
    def message(self) -> str:
        if not self.status_updated:
            text = f"Event booking is already {self.status.value}."
        else:
            text = "Event booking status updated successfully."
        if self.declined_count:
            text += f" {self.declined_count} conflicting pending booking(s) were automatically declined."
        return text


def _pending_filter():
    return or_(Booking.status == BookingStatus.PENDING.value, Booking.status.is_(None))


def _overlap_filter(interval: DateInterval):
    return and_(Booking.event_start_date <= interval.end, Booking.event_end_date >= interval.start)


def parse_booking_id(value: Any) -> int:
    """Booking ids are integers; anything else cannot resolve to a booking."""
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise BookingNotFoundError(value)


def parse_target_status(value: Optional[str]) -> BookingStatus:
    if not value:
        raise BookingValidationError(["status"], "Status is required.")
    for target in (BookingStatus.CONFIRMED, BookingStatus.CANCELLED):
        if target.value.lower() == value.strip().lower():
            return target
    raise BookingValidationError(
        ["status"],
        f"Status must be one of: {BookingStatus.CONFIRMED.value}, {BookingStatus.CANCELLED.value}.",
    )


async def create_booking(db: AsyncSession, request: BookingCreate) -> CreateResult:
    """
    Create a Pending booking.
    Rejected with 409 if a Confirmed reservation already holds any of the dates.
    """
    missing = [name for name in REQUIRED_FIELDS if not getattr(request, name)]
    if missing:
        record_booking_attempt("invalid")
        logger.warning("booking_rejected_missing_fields", missing=missing)
        raise BookingValidationError(missing)

    interval = DateInterval.from_values(request.event_start_date, request.event_end_date)
    descriptor = event_descriptor(request.event_type, request.event_name)
    if descriptor is None:
        logger.warning("booking_without_event_type", customer=request.customer_name)

    check = await find_confirmed_overlap(db, interval)
    if check.conflict is not None:
        record_booking_attempt("conflict")
        logger.warning(
            "booking_conflict",
            requested=interval.as_dict(),
            conflicting=check.conflict.interval.as_dict(),
            customer=check.conflict.customer_name,
        )
        raise conflict_error(check.conflict)

    booking = Booking(
        customer_name=request.customer_name,
        email=request.email,
        contact_number=request.contact_number,
        event_type=descriptor,
        event_name=clean_optional_text(request.event_name),
        special_request=request.special_request,
        event_start_date=interval.start,
        event_end_date=interval.end,
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    record_booking_attempt("created")
    logger.info(
        "booking_created",
        booking_id=booking.id,
        customer=booking.customer_name,
        event_type=descriptor,
        interval=interval.as_dict(),
        conflict_check=check.status,
    )
    return CreateResult(booking=booking, conflict_check=check)


async def get_booking(db: AsyncSession, booking_id: Any) -> Booking:
    """Get a single booking by ID, always re-read from the store."""
    result = await db.execute(
        select(Booking)
        .where(Booking.id == parse_booking_id(booking_id))
        .execution_options(populate_existing=True)
    )
    booking = result.scalar_one_or_none()
    if not booking:
        raise BookingNotFoundError(booking_id)
    return booking


async def list_bookings(db: AsyncSession) -> list[Booking]:
    result = await db.execute(select(Booking).order_by(Booking.event_start_date.desc(), Booking.id.desc()))
    return list(result.scalars().all())


async def set_status(
    db: AsyncSession,
    booking_id: Any,
    status: Optional[str],
    confirmed_by: Optional[str] = None,
) -> TransitionResult:
    """Move a booking to Confirmed or Cancelled."""
    target = parse_target_status(status)
    booking = await get_booking(db, booking_id)
    current = booking.current_status

    if is_noop(current, target):
        record_transition(target.value, "noop")
        logger.info("status_unchanged", booking_id=booking.id, status=current.value)
        return TransitionResult(booking_id=booking.id, status=current, status_updated=False)

    if not can_transition(current, target):
        record_transition(target.value, "rejected")
        raise InvalidTransitionError(booking.id, current.value, target.value)

    if target == BookingStatus.CANCELLED:
        return await _cancel(db, booking)
    return await _confirm(db, booking.id, confirmed_by)


async def _cancel(db: AsyncSession, booking: Booking) -> TransitionResult:
    booking_id = booking.id
    result = await db.execute(
        update(Booking)
        .where(Booking.id == booking_id, _pending_filter())
        .values(status=BookingStatus.CANCELLED.value)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount == 0:
        # changed underneath us; re-evaluate against the fresh row
        fresh = await get_booking(db, booking_id)
        if fresh.current_status == BookingStatus.CANCELLED:
            return TransitionResult(booking_id=booking_id, status=BookingStatus.CANCELLED, status_updated=False)
        raise InvalidTransitionError(booking_id, fresh.current_status.value, BookingStatus.CANCELLED.value)

    await db.flush()
    record_transition(BookingStatus.CANCELLED.value, "applied")
    logger.info("booking_cancelled", booking_id=booking_id)
    return TransitionResult(booking_id=booking_id, status=BookingStatus.CANCELLED, status_updated=True)


async def _claim_venue(db: AsyncSession, read_version: int) -> bool:
    """Bump the venue version iff nobody else did since we read it."""
    result = await db.execute(
        update(Venue)
        .where(Venue.id == VENUE_ID, Venue.version == read_version)
        .values(version=Venue.version + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _confirm(db: AsyncSession, booking_id: int, confirmed_by: Optional[str]) -> TransitionResult:
    start = time.perf_counter()
    audit: Optional[AuditResult] = None

    for attempt in range(1, settings.MAX_RETRY_ATTEMPTS + 1):
        # Step 1: fresh state for this attempt
        booking = await get_booking(db, booking_id)
        current = booking.current_status
        if current == BookingStatus.CONFIRMED:
            # a concurrent request confirmed this same booking first
            return TransitionResult(booking_id=booking_id, status=current, status_updated=False)
        if current != BookingStatus.PENDING:
            raise InvalidTransitionError(booking_id, current.value, BookingStatus.CONFIRMED.value)
        snapshot = BookingSnapshot.from_booking(booking)

        version = (await db.execute(select(Venue.version).where(Venue.id == VENUE_ID))).scalar_one_or_none()
        if version is None:
            raise StoreError("Venue record is missing; the store schema has not been initialised.", source="venues")

        # Step 2: competitors, excluding this booking
        check = await find_confirmed_overlap(db, snapshot.interval, exclude_booking_id=booking_id)
        if check.conflict is not None:
            await db.rollback()
            record_transition(BookingStatus.CONFIRMED.value, "conflict")
            logger.warning(
                "confirm_conflict",
                booking_id=booking_id,
                requested=snapshot.interval.as_dict(),
                conflicting=check.conflict.interval.as_dict(),
                customer=check.conflict.customer_name,
            )
            raise conflict_error(check.conflict, confirming=True)

        # Step 3-4: conditional writes
        claimed = await _claim_venue(db, version)
        if claimed:
            result = await db.execute(
                update(Booking)
                .where(Booking.id == booking_id, _pending_filter())
                .values(status=BookingStatus.CONFIRMED.value)
                .execution_options(synchronize_session="fetch")
            )
            claimed = result.rowcount == 1

        if not claimed:
            logger.info("confirm_retry", booking_id=booking_id, attempt=attempt, reason="version_conflict")
            optimistic_lock_retries.inc()
            await db.rollback()
            continue

        if settings.strict_consistency:
            try:
                entry = await append_log_entry(db, snapshot, confirmed_by)
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("audit_log_failed", booking_id=booking_id, error=str(e), mode="strict")
                raise StoreError(
                    "Could not write the confirmation log entry; the booking was not confirmed.",
                    source="event_reservation_logs",
                    error=e,
                )
            audit = AuditResult(logged=True, log_id=entry.log_id)

        # Step 5
        await db.commit()
        break
    else:
        record_transition(BookingStatus.CONFIRMED.value, "contention")
        raise BookingContentionError(booking_id, settings.MAX_RETRY_ATTEMPTS)

    record_transition(BookingStatus.CONFIRMED.value, "applied")
    logger.info(
        "booking_confirmed",
        booking_id=booking_id,
        customer=snapshot.customer_name,
        interval=snapshot.interval.as_dict(),
        attempt=attempt,
        conflict_check=check.status,
    )

    if audit is None:
        audit = await log_confirmation(db, snapshot, confirmed_by)
    cascade = await decline_overlapping_pending(db, snapshot)
    confirm_latency.observe(time.perf_counter() - start)

    return TransitionResult(
        booking_id=booking_id,
        status=BookingStatus.CONFIRMED,
        status_updated=True,
        declined_count=cascade.declined_count,
        declined=cascade.declined,
        audit=audit,
        cascade_error=cascade.error,
        conflict_check=check,
    )


async def decline_overlapping_pending(db: AsyncSession, confirmed: BookingSnapshot) -> CascadeResult:
    """
    Cancel every other Pending (or status-less) booking overlapping a
    confirmed interval, in a single UPDATE ... RETURNING. The declined list
    and count come from the rows that statement actually changed. Best effort:
    a failure is reported and the confirmation stands.
    """
    try:
        result = await db.execute(
            update(Booking)
            .where(Booking.id != confirmed.id, _pending_filter(), _overlap_filter(confirmed.interval))
            .values(status=BookingStatus.CANCELLED.value)
            .returning(Booking.id, Booking.customer_name)
            .execution_options(synchronize_session=False)
        )
        rows = sorted(result.all(), key=lambda row: row.id)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        cascade_failures.inc()
        logger.error(
            "cascade_decline_failed",
            booking_id=confirmed.id,
            error=str(e),
            note="confirmation stands; overlapping pending bookings were not declined",
        )
        return CascadeResult(
            error=StoreError("Could not decline conflicting pending bookings.", source="event_bookings", error=e)
        )

    if not rows:
        logger.info("no_conflicting_pending_bookings", booking_id=confirmed.id)
        return CascadeResult()

    declined = [DeclinedBooking(id=row.id, customer=row.customer_name) for row in rows]
    auto_declined.inc(len(declined))
    logger.info(
        "bookings_auto_declined",
        booking_id=confirmed.id,
        declined_count=len(declined),
        declined_ids=[d.id for d in declined],
        customers=[d.customer for d in declined],
    )
    return CascadeResult(declined_count=len(declined), declined=declined)
