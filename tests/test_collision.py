"""
Tests for collision detection.
"""

import pendulum

from bookingengine.domain.collision import (
    colliding_blocks,
    colliding_bookings,
    colliding_entries,
    is_occupied,
)
from bookingengine.domain.models import Block, Booking, BookingStatus, CustomerInfo, TimeRange

TZ = "America/Argentina/Buenos_Aires"


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _range(start: str, end: str) -> TimeRange:
    return TimeRange(start=_at(f"2024-11-25 {start}"), end=_at(f"2024-11-25 {end}"))


def _booking(booking_id: int, start: str, duration: int = 60, status=BookingStatus.CONFIRMED) -> Booking:
    booking = Booking.create(
        service_id=1,
        service_name="Massage",
        customer=CustomerInfo(name="Luis", email="luis@example.com", contact="555"),
        start_at=_at(f"2024-11-25 {start}"),
        duration_minutes=duration,
    )
    booking.id = booking_id
    booking.status = status
    return booking


def _block(start: str, end: str) -> Block:
    return Block.create(reason="Maintenance", start_at=_at(f"2024-11-25 {start}"), end_at=_at(f"2024-11-25 {end}"))


def test_booking_collision_is_half_open():
    bookings = [_booking(1, "10:00")]

    assert colliding_bookings(_range("10:30", "11:00"), bookings) == bookings
    assert colliding_bookings(_range("11:00", "11:30"), bookings) == []
    assert colliding_bookings(_range("09:30", "10:00"), bookings) == []


def test_non_occupying_bookings_are_ignored():
    bookings = [
        _booking(1, "10:00", status=BookingStatus.CANCELLED),
        _booking(2, "12:00", status=BookingStatus.COMPLETED),
    ]

    assert colliding_bookings(_range("10:00", "13:00"), bookings) == []


def test_excluded_booking_is_ignored():
    bookings = [_booking(1, "10:00"), _booking(2, "11:00")]

    result = colliding_bookings(_range("10:30", "11:30"), bookings, exclude_booking_id=1)

    assert [b.id for b in result] == [2]


def test_cancelled_blocks_are_ignored():
    active = _block("12:00", "14:00")
    cancelled = _block("15:00", "16:00")
    cancelled.cancel()

    assert colliding_blocks(_range("13:30", "15:30"), [active, cancelled]) == [active]


def test_colliding_entries_collects_both_kinds():
    collisions = colliding_entries(
        _range("10:30", "12:30"),
        bookings=[_booking(1, "10:00")],
        blocks=[_block("12:00", "13:00")],
    )

    assert collisions
    assert len(collisions.bookings) == 1
    assert len(collisions.blocks) == 1
    assert not colliding_entries(_range("15:00", "16:00"), [], [])


def test_is_occupied():
    bookings = [_booking(1, "10:00")]
    blocks = [_block("12:00", "13:00")]

    assert is_occupied(_range("10:30", "11:00"), bookings, blocks)
    assert is_occupied(_range("12:30", "13:30"), bookings, blocks)
    assert not is_occupied(_range("11:00", "12:00"), bookings, blocks)
    assert not is_occupied(_range("10:00", "11:00"), bookings, blocks, exclude_booking_id=1)
