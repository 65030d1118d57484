"""
Event booking endpoints: create, list, status changes and the confirmation log.

Confirm/decline are privileged operations; access control is the job of
whatever sits in front of this service.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from venue_booking.core.logging import get_logger
from venue_booking.db.schema import with_schema_repair
from venue_booking.db.session import get_db
from venue_booking.domain.status import BookingStatus
from venue_booking.schemas.booking import (
    BookingCreate,
    BookingCreatedResponse,
    BookingListResponse,
    BookingResponse,
    ConflictCheckResponse,
    DeclinedBooking,
    StatusUpdate,
    StatusUpdateResponse,
)
from venue_booking.schemas.reservation_log import ReservationLogListResponse, ReservationLogResponse
from venue_booking.services.audit_service import list_confirmation_log
from venue_booking.services.cache_service import (
    get_confirmation_log_generation,
    get_cached_confirmation_log,
    invalidate_confirmation_log_cache,
    set_cached_confirmation_log,
)
from venue_booking.services.reservation_service import (
    TransitionResult,
    create_booking,
    get_booking,
    list_bookings,
    set_status,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/event-bookings", tags=["Event Bookings"])


@router.get("/", response_model=BookingListResponse)
async def list_event_bookings(db: AsyncSession = Depends(get_db)):
    """All bookings, latest start date first."""
    bookings = await with_schema_repair(db, lambda: list_bookings(db), "list_bookings")
    return BookingListResponse(data=[BookingResponse.model_validate(b) for b in bookings])


@router.get("/logs", response_model=ReservationLogListResponse)
async def list_confirmation_log_endpoint(db: AsyncSession = Depends(get_db)):
    """
    Confirmed reservations, newest confirmation first.
    Served from Redis when cached; the cache is dropped on every confirm and a
    snapshot read across a confirm is not stored.
    """
    generation = await get_confirmation_log_generation()
    cached = await get_cached_confirmation_log()
    if cached is not None:
        logger.info("confirmation_log_cache_hit", entries=len(cached))
        return JSONResponse({"success": True, "data": cached, "cached": True})

    entries = await with_schema_repair(db, lambda: list_confirmation_log(db), "list_confirmation_log")
    response = ReservationLogListResponse(data=[ReservationLogResponse.model_validate(e) for e in entries])
    await set_cached_confirmation_log([item.model_dump(mode="json") for item in response.data], generation)
    return response


@router.post("/", response_model=BookingCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_event_booking(booking_data: BookingCreate, db: AsyncSession = Depends(get_db)):
    """
    Submit a reservation request. It starts Pending.

    Returns 400 when required fields are missing and 409 when a confirmed
    reservation already holds any of the requested dates.
    """
    result = await with_schema_repair(db, lambda: create_booking(db, booking_data), "create_booking")
    return BookingCreatedResponse(
        message="Event booking saved successfully!",
        booking_id=result.booking.id,
        status=result.booking.status,
        conflict_check=ConflictCheckResponse(**result.conflict_check.as_dict()),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_event_booking(booking_id: str, db: AsyncSession = Depends(get_db)):
    booking = await with_schema_repair(db, lambda: get_booking(db, booking_id), "get_booking")
    return BookingResponse.model_validate(booking)


@router.put("/{booking_id}/status", response_model=StatusUpdateResponse)
async def update_event_booking_status(
    booking_id: str,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    """
    Confirm or decline a booking.

    Confirming re-checks for conflicts, records the confirmation in the log
    and automatically declines every other pending booking on the same dates.
    """
    result = await with_schema_repair(
        db,
        lambda: set_status(db, booking_id, payload.status, payload.confirmed_by),
        "set_status",
    )
    if result.status == BookingStatus.CONFIRMED and result.status_updated:
        await invalidate_confirmation_log_cache()
    return _status_response(result)


def _status_response(result: TransitionResult) -> StatusUpdateResponse:
    audit = result.audit
    return StatusUpdateResponse(
        message=result.message,
        booking_id=result.booking_id,
        status=result.status.value,
        status_updated=result.status_updated,
        declined_count=result.declined_count,
        declined_bookings=[DeclinedBooking(id=d.id, customer=d.customer) for d in result.declined],
        audit_logged=None if audit is None else audit.logged,
        audit_error=None if audit is None or audit.error is None else audit.error.message,
        cascade_error=None if result.cascade_error is None else result.cascade_error.message,
        conflict_check=(
            None if result.conflict_check is None
            else ConflictCheckResponse(**result.conflict_check.as_dict())
        ),
    )
