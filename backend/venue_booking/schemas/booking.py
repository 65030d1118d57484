"""
Pydantic schemas for booking-related request/response validation.

Request fields are all optional at the schema level: missing required fields
are reported by the reservation service as one BookingValidationError listing
every gap, rather than as a framework 422.
"""

from datetime import date, datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, Field

from venue_booking.domain.normalize import clean_optional_text


def _text_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value.strip() if isinstance(value, str) else str(value)
    return text or None


def _status_text(value: Any) -> str:
    return _text_or_none(value) or "Pending"


Text = Annotated[Optional[str], BeforeValidator(_text_or_none)]
OptionalText = Annotated[Optional[str], BeforeValidator(clean_optional_text)]


class BookingCreate(BaseModel):
    customer_name: Text = Field(None, max_length=100)
    email: Text = Field(None, max_length=100)
    contact_number: Text = Field(None, max_length=20)
    event_type: OptionalText = Field(None, max_length=255)
    # older clients send the descriptor as event_name
    event_name: OptionalText = Field(None, max_length=255)
    special_request: OptionalText = None
    event_start_date: Text = None
    event_end_date: Text = None


class ConflictCheckResponse(BaseModel):
    status: str
    degraded_sources: list[str] = []
    reasons: list[str] = []


class BookingCreatedResponse(BaseModel):
    success: bool = True
    message: str
    booking_id: int
    status: str
    conflict_check: ConflictCheckResponse


class BookingResponse(BaseModel):
    id: int
    customer_name: str
    email: str
    contact_number: str
    event_type: OptionalText = None
    event_name: OptionalText = None
    special_request: OptionalText = None
    event_start_date: date
    event_end_date: date
    status: Annotated[str, BeforeValidator(_status_text)]
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BookingListResponse(BaseModel):
    success: bool = True
    data: list[BookingResponse]


class StatusUpdate(BaseModel):
    status: Text = None
    confirmed_by: OptionalText = Field(None, max_length=100)


class DeclinedBooking(BaseModel):
    id: int
    customer: Optional[str]


class StatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    booking_id: int
    status: str
    status_updated: bool
    declined_count: int = 0
    declined_bookings: list[DeclinedBooking] = []
    audit_logged: Optional[bool] = None
    audit_error: Optional[str] = None
    cascade_error: Optional[str] = None
    conflict_check: Optional[ConflictCheckResponse] = None
