"""
Calendar-date intervals and the overlap rule shared by every conflict query.

Dates are compared as local calendar dates. Datetimes keep their wall-clock
date and are never converted through UTC, so "2025-12-01" stays the 1st no
matter which timezone the server runs in.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from venue_booking.core.exceptions import InvalidIntervalError

_DATE_PREFIX = re.compile(r"^(\d{4}-\d{2}-\d{2})(?:$|[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?$)")


def normalize_date(value: Any) -> date:
    """Reduce a date, datetime or ``YYYY-MM-DD[...]`` string to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _DATE_PREFIX.match(value.strip())
        if match:
            try:
                return date.fromisoformat(match.group(1))
            except ValueError:
                pass
    raise InvalidIntervalError(f"Invalid date: {value!r}. Expected YYYY-MM-DD.", value=value)


@dataclass(frozen=True)
class DateInterval:
    """Closed interval of calendar days, both ends inclusive."""

    start: date
    end: date

    def __post_init__(self):
        if self.end < self.start:
            raise InvalidIntervalError(
                f"Event end date {self.end.isoformat()} is before start date {self.start.isoformat()}.",
                value=f"{self.start.isoformat()}..{self.end.isoformat()}",
            )

    @classmethod
    def from_values(cls, start: Any, end: Any) -> "DateInterval":
        return cls(normalize_date(start), normalize_date(end))

    def overlaps(self, other: "DateInterval") -> bool:
        return overlaps(self, other)

    def display(self) -> str:
        """Human readable range, e.g. ``Dec 1, 2025 to Dec 3, 2025``."""
        first, last = _display_date(self.start), _display_date(self.end)
        return first if first == last else f"{first} to {last}"

    def as_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def overlaps(a: DateInterval, b: DateInterval) -> bool:
    """Two closed intervals overlap when they share at least one day."""
    return a.start <= b.end and b.start <= a.end


def _display_date(value: date) -> str:
    return f"{value.strftime('%b')} {value.day}, {value.year}"
