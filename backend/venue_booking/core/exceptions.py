"""
Reservation error taxonomy.

Every error is an HTTPException so services can raise it directly and FastAPI
renders it with the right status code. `detail` is always a dict carrying
`success: false`, a display `message` and error-specific fields.
"""

from typing import Any, Optional

from fastapi import HTTPException, status


class ReservationError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **fields: Any):
        self.message = message
        detail = {"success": False, "message": message, **fields}
        super().__init__(status_code=self.status_code, detail=detail)

    def __str__(self) -> str:
        return self.message


class BookingValidationError(ReservationError):
    """Required fields are missing. Raised before the store is touched."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, missing_fields: list[str], message: Optional[str] = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message or f"Missing required fields: {', '.join(self.missing_fields)}.",
            missing_fields=self.missing_fields,
        )


class InvalidIntervalError(ReservationError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, value: Any = None):
        self.value = value
        super().__init__(message, value=None if value is None else str(value))


class BookingConflictError(ReservationError):
    """An overlapping Confirmed reservation already holds the requested dates."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, conflict):
        self.conflict = conflict
        super().__init__(
            message,
            conflict=True,
            conflicting_dates={
                "start": conflict.interval.start.isoformat(),
                "end": conflict.interval.end.isoformat(),
            },
            conflicting_customer=conflict.customer_name,
            conflict_source=conflict.source,
        )


class InvalidTransitionError(ReservationError):
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: int, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Event booking {booking_id} is already {current} and cannot become {target}.",
            current_status=current,
            requested_status=target,
        )


class BookingContentionError(ReservationError):
    """Every optimistic lock attempt lost to a concurrent confirm."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, booking_id: int, attempts: int):
        super().__init__(
            "Confirmation failed due to concurrent updates. Please try again.",
            booking_id=booking_id,
            attempts=attempts,
        )


class BookingNotFoundError(ReservationError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, booking_id: Any):
        self.booking_id = booking_id
        super().__init__(f"Event booking with ID {booking_id} not found.")


class StoreError(ReservationError):
    """The persistence layer is unreachable or failed unexpectedly."""

    def __init__(self, message: str, source: Optional[str] = None, error: Optional[BaseException] = None):
        self.source = source
        self.error = error
        super().__init__(message, source=source, error=None if error is None else str(error))


class SchemaDriftError(StoreError):
    """An expected column is missing and the repair hook could not add it."""

    def __init__(self, message: str, error: Optional[BaseException] = None):
        super().__init__(message, source="schema", error=error)
