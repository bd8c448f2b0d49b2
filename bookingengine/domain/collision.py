"""
Collision detection over bookings and blocks.

Pure functions: nothing here touches storage, so they are safe to call from
any number of concurrent readers.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .models import Block, Booking, TimeRange


@dataclass
class Collisions:
    """Occupying entries that overlap a candidate range."""
    bookings: List[Booking] = field(default_factory=list)
    blocks: List[Block] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.bookings or self.blocks)


def colliding_bookings(
    candidate: TimeRange,
    bookings: Iterable[Booking],
    exclude_booking_id: Optional[int] = None,
) -> List[Booking]:
    """Return occupying bookings overlapping the candidate, in input order."""
    return [
        booking for booking in bookings
        if booking.occupies_time()
        and (exclude_booking_id is None or booking.id != exclude_booking_id)
        and booking.time_range.overlaps(candidate)
    ]


def colliding_blocks(candidate: TimeRange, blocks: Iterable[Block]) -> List[Block]:
    """Return active blocks overlapping the candidate, in input order."""
    return [
        block for block in blocks
        if block.occupies_time() and block.time_range.overlaps(candidate)
    ]


def colliding_entries(
    candidate: TimeRange,
    bookings: Iterable[Booking],
    blocks: Iterable[Block],
    exclude_booking_id: Optional[int] = None,
) -> Collisions:
    """
    Collect every occupying booking and block that overlaps ``candidate``.

    Args:
        candidate: The half-open range being requested
        bookings: Bookings to test; non-occupying ones are ignored
        blocks: Blocks to test; cancelled ones are ignored
        exclude_booking_id: Booking to skip (the one being rescheduled)
    """
    return Collisions(
        bookings=colliding_bookings(candidate, bookings, exclude_booking_id),
        blocks=colliding_blocks(candidate, blocks),
    )


def is_occupied(
    candidate: TimeRange,
    bookings: Iterable[Booking],
    blocks: Iterable[Block],
    exclude_booking_id: Optional[int] = None,
) -> bool:
    """Check whether any occupying entry overlaps the candidate."""
    for block in blocks:
        if block.occupies_time() and block.time_range.overlaps(candidate):
            return True

    for booking in bookings:
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if booking.occupies_time() and booking.time_range.overlaps(candidate):
            return True

    return False
