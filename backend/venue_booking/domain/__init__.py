"""
Pure domain rules: date intervals, sentinel cleanup, status transitions.
No database or framework access happens here.
"""

from .intervals import DateInterval, normalize_date, overlaps
from .normalize import clean_optional_text, event_descriptor
from .status import BookingStatus, coerce_status

__all__ = [
    "DateInterval", "normalize_date", "overlaps",
    "clean_optional_text", "event_descriptor",
    "BookingStatus", "coerce_status",
]
