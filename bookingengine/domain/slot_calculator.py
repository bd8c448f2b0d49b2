"""
Core business logic for calculating available booking slots.

This is the heart of the availability read path - pure domain logic without
any external dependencies (no storage, no config files, no I/O).
"""

import logging
from datetime import date as Date
from typing import Iterable, Iterator, List

from pendulum import DateTime

from .collision import is_occupied
from .models import (
    DEFAULT_TIMEZONE,
    SLOT_INTERVAL_MINUTES,
    Block,
    Booking,
    BusinessHours,
    TimeRange,
)

logger = logging.getLogger(__name__)


class SlotCalculator:
    """
    Calculates free start times for a service on a given date.

    Algorithm:
    1. Resolve the business-hours window for the date (closed day -> nothing)
    2. Normalize the service duration onto the 30-minute grid
    3. Short-circuit when a single block covers the whole window
    4. Walk the window on the 30-minute grid, keeping candidates that fit
    5. Drop every candidate that collides with an occupying booking or block
    """

    def __init__(
        self,
        timezone: str = DEFAULT_TIMEZONE,
        slot_interval_minutes: int = SLOT_INTERVAL_MINUTES,
    ):
        self.timezone = timezone
        self.slot_interval_minutes = slot_interval_minutes

    def compute_slots(
        self,
        day: Date,
        service_duration_minutes: int,
        business_hours: BusinessHours,
        bookings: Iterable[Booking] = (),
        blocks: Iterable[Block] = (),
    ) -> List[DateTime]:
        """
        Find every free start time for a service on ``day``.

        Args:
            day: Calendar date in the business timezone
            service_duration_minutes: Service length; rounded up to the grid
            business_hours: Opening hours for that weekday
            bookings: Bookings near the window (non-occupying ones are ignored)
            blocks: Blocks near the window (cancelled ones are ignored)

        Returns:
            Strictly increasing list of slot start times
        """
        window = self.business_window(day, business_hours)
        if window is None:
            logger.info("Day %s is closed. No slots available.", day)
            return []

        duration = self.normalize_duration(service_duration_minutes)
        bookings = list(bookings)
        blocks = list(blocks)

        if self._is_fully_blocked(window, blocks):
            logger.info("Day %s is fully blocked. No slots available.", day)
            return []

        slots = [
            candidate.start
            for candidate in self._candidate_ranges(window, duration)
            if not is_occupied(candidate, bookings, blocks)
        ]

        logger.debug("Found %d available slots on %s", len(slots), day)
        return slots

    def business_window(self, day: Date, business_hours: BusinessHours) -> TimeRange | None:
        return business_hours.window_for(day, self.timezone)

    def normalize_duration(self, duration_minutes: int) -> int:
        """
        Round a duration up to the next multiple of the slot interval.

        The service catalog lives outside this engine and may hand us odd
        values; anything non-positive becomes a single slot.
        """
        interval = self.slot_interval_minutes
        if duration_minutes > 0 and duration_minutes % interval == 0:
            return duration_minutes

        normalized = max(interval, -(-duration_minutes // interval) * interval)
        logger.warning(
            "Invalid service duration %s minutes, rounded to %s", duration_minutes, normalized
        )
        return normalized

    def _candidate_ranges(self, window: TimeRange, duration_minutes: int) -> Iterator[TimeRange]:
        """
        Yield candidate ranges from the window opening on the slot grid.

        Stops once a candidate would end after closing time or spill into the
        next calendar day.
        """
        current = window.start
        opening_date = window.start.date()

        while True:
            end = current.add(minutes=duration_minutes)
            if end > window.end or end.date() != opening_date:
                return
            yield TimeRange(start=current, end=end)
            current = current.add(minutes=self.slot_interval_minutes)

    @staticmethod
    def _is_fully_blocked(window: TimeRange, blocks: List[Block]) -> bool:
        """Check if a single active block covers the entire business window."""
        return any(block.occupies_time() and block.covers(window) for block in blocks)
