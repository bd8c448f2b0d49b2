"""
Service layer that orchestrates ports and domain logic.
"""

from .availability import AvailabilityService
from .blocks import BlockService
from .bookings import BookingService
from .calendar import CalendarEvent, CalendarEventType, CalendarService
from .history import BookingHistoryRecorder

__all__ = [
    "AvailabilityService",
    "BlockService",
    "BookingHistoryRecorder",
    "BookingService",
    "CalendarEvent",
    "CalendarEventType",
    "CalendarService",
]
