"""
Booking status values and the transitions allowed between them.

    Pending ──► Confirmed
       │
       └──────► Cancelled

Confirmed and Cancelled are terminal. Repeating the current terminal status is
accepted as a no-op so retried requests succeed.
"""

from enum import Enum
from typing import Optional


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"

    def __str__(self) -> str:
        return self.value


TERMINAL_STATUSES = frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED})
TARGET_STATUSES = TERMINAL_STATUSES


def coerce_status(value: Optional[str]) -> BookingStatus:
    """Read a stored status; NULL or blank legacy rows count as Pending."""
    if value is None or not str(value).strip():
        return BookingStatus.PENDING
    text = str(value).strip().lower()
    for member in BookingStatus:
        if member.value.lower() == text:
            return member
    raise ValueError(f"Unknown booking status: {value!r}")


def is_noop(current: BookingStatus, target: BookingStatus) -> bool:
    return current == target and current in TERMINAL_STATUSES


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return current == BookingStatus.PENDING and target in TARGET_STATUSES
