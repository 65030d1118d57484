"""
Pydantic schemas for the confirmation log listing.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, field_serializer

CONFIRMED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"


class ReservationLogResponse(BaseModel):
    log_id: int
    booking_id: Optional[int] = None
    event_type: Optional[str] = None
    customer_name: str
    email: str
    contact_number: str
    special_request: Optional[str] = None
    event_start_date: date
    event_end_date: date
    confirmed_at: datetime
    confirmed_by: Optional[str] = None
    status: str

    model_config = {"from_attributes": True}

    @field_serializer("confirmed_at")
    def serialize_confirmed_at(self, value: datetime) -> str:
        return value.strftime(CONFIRMED_AT_FORMAT)


class ReservationLogListResponse(BaseModel):
    success: bool = True
    data: list[ReservationLogResponse]
    cached: bool = False
