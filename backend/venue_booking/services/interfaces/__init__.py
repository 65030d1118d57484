"""
Service interfaces for dependency inversion.
Conflict sources are pluggable: the resolver merges whatever it is given.
"""

from .conflict_source import Conflict, ConflictSource
from .booking_source import ActiveBookingSource
from .log_source import ConfirmationLogSource

__all__ = ['Conflict', 'ConflictSource', 'ActiveBookingSource', 'ConfirmationLogSource']
