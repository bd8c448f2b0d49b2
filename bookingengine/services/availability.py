"""
Availability read path: which start times are free for a service on a day.

The service resolves business hours from the configuration collaborator,
fetches occupying bookings and blocks for the business window, and delegates
the slot enumeration to the domain-level ``SlotCalculator``.
"""

import logging
from datetime import date as Date
from typing import List, Optional, Tuple

from pendulum import DateTime

from ..config import fallback_business_hours, resolve_business_hours
from ..domain.models import Block, Booking, BusinessHours, TimeRange
from ..domain.slot_calculator import SlotCalculator
from .ports import BlockRepository, BookingRepository, ScheduleConfigSource

logger = logging.getLogger(__name__)


class AvailabilityService:
    """
    Computes free slots for a date.

    This path is public-facing and must not fail because of configuration:
    an unreadable schedule degrades to the fallback window.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        block_repository: BlockRepository,
        schedule_source: ScheduleConfigSource,
        slot_calculator: Optional[SlotCalculator] = None,
        fallback_hours: Optional[BusinessHours] = None,
    ) -> None:
        self._booking_repository = booking_repository
        self._block_repository = block_repository
        self._schedule_source = schedule_source
        self._slot_calculator = slot_calculator or SlotCalculator()
        self._fallback_hours = fallback_hours or fallback_business_hours()

    def compute_slots(self, day: Date, service_duration_minutes: int) -> List[DateTime]:
        """
        Return the free start times for a service of the given duration.

        The result is strictly increasing and depends only on stored
        bookings, blocks and configuration, so repeated calls agree.
        """
        business_hours = self.business_hours_for(day)
        window = self._slot_calculator.business_window(day, business_hours)
        if window is None:
            logger.info("Day %s is closed. No slots available.", day)
            return []

        bookings, blocks = self.fetch_occupying(window)

        return self._slot_calculator.compute_slots(
            day,
            service_duration_minutes,
            business_hours,
            bookings=bookings,
            blocks=blocks,
        )

    def business_hours_for(self, day: Date) -> BusinessHours:
        """Resolve business hours, falling back when the source misbehaves."""
        try:
            document = self._schedule_source.load_weekly_schedule()
        except Exception:
            logger.exception("Schedule source failed, using fallback hours")
            document = None

        return resolve_business_hours(document, day, self._fallback_hours)

    def fetch_occupying(self, window: TimeRange) -> Tuple[List[Booking], List[Block]]:
        """Fetch bookings and blocks that occupy time inside the window."""
        bookings = [
            booking
            for booking in self._booking_repository.find_by_date_range(
                window.start, window.end, include_cancelled=False
            )
            if booking.occupies_time()
        ]
        blocks = self._block_repository.find_active_in_range(window.start, window.end)

        logger.debug(
            "Found %d occupying bookings and %d active blocks in %s",
            len(bookings), len(blocks), window,
        )
        return bookings, blocks
