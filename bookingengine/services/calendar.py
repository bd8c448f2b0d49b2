"""
Admin calendar view merging bookings and blocks on one timeline.
"""

import logging
from dataclasses import dataclass
from datetime import date as Date
from enum import Enum
from typing import List, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import DEFAULT_TIMEZONE, Block, Booking, PaymentStatus
from .ports import BlockRepository, BookingRepository

logger = logging.getLogger(__name__)


class CalendarEventType(str, Enum):
    BOOKING = "BOOKING"
    BLOCK = "BLOCK"


@dataclass(frozen=True)
class CalendarEvent:
    """
    One entry on the calendar.

    Booking-only fields are None for blocks and vice versa.
    """
    type: CalendarEventType
    id: int
    start_at: DateTime
    end_at: DateTime
    status: str
    booking_number: Optional[str] = None
    service_name: Optional[str] = None
    customer_name: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    block_number: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "CalendarEvent":
        return cls(
            type=CalendarEventType.BOOKING,
            id=booking.id,
            start_at=booking.start_at,
            end_at=booking.end_at,
            status=booking.status.value,
            booking_number=booking.booking_number,
            service_name=booking.service_name,
            customer_name=booking.customer.name,
            payment_status=booking.payment_status,
        )

    @classmethod
    def from_block(cls, block: Block) -> "CalendarEvent":
        return cls(
            type=CalendarEventType.BLOCK,
            id=block.id,
            start_at=block.start_at,
            end_at=block.end_at,
            status=block.status.value,
            block_number=block.block_number,
            reason=block.reason,
        )

    @property
    def title(self) -> str:
        if self.type == CalendarEventType.BOOKING:
            return f"{self.service_name} - {self.customer_name}"
        return self.reason or ""


class CalendarService:
    """Lists calendar events for a range of days."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        block_repository: BlockRepository,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._booking_repository = booking_repository
        self._block_repository = block_repository
        self.timezone = timezone

    def events(
        self, from_date: Date, to_date: Date, include_cancelled: bool = False
    ) -> List[CalendarEvent]:
        """
        Return bookings and blocks between two dates (both inclusive),
        sorted by start time.
        """
        logger.info(
            "Fetching calendar events from %s to %s (include_cancelled=%s)",
            from_date, to_date, include_cancelled,
        )

        start = pendulum.datetime(from_date.year, from_date.month, from_date.day, tz=self.timezone)
        end = pendulum.datetime(
            to_date.year, to_date.month, to_date.day, tz=self.timezone
        ).add(days=1)

        bookings = self._booking_repository.find_by_date_range(start, end, include_cancelled)
        blocks = self._block_repository.find_by_date_range(start, end, include_cancelled)
        logger.debug("Found %d bookings and %d blocks in range", len(bookings), len(blocks))

        events = [CalendarEvent.from_booking(b) for b in bookings]
        events.extend(CalendarEvent.from_block(b) for b in blocks)
        events.sort(key=lambda e: (e.start_at, e.type.value))

        logger.info("Returning %d total calendar events", len(events))
        return events
