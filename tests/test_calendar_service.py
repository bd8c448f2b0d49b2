"""
Tests for the CalendarService.
"""

from datetime import time

import pendulum

from bookingengine.config import AppConfig
from bookingengine.services.calendar import CalendarEventType
from bookingengine.wiring import build_memory_engine

TZ = "America/Argentina/Buenos_Aires"
NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz=TZ)


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _seeded_engine():
    engine = build_memory_engine(AppConfig(), clock=lambda: NOW)
    for day, hour, name in [(25, 15, "Ana"), (25, 10, "Luis"), (27, 9, "Marta")]:
        engine.bookings.create_booking(
            service_id=1,
            service_name="Facial",
            customer_name=name,
            customer_email=f"{name.lower()}@example.com",
            customer_contact="555",
            booking_date=pendulum.date(2024, 11, day),
            booking_time=time(hour, 0),
            duration_minutes=60,
        )
    engine.blocks.create_block(_at("2024-11-25 12:00"), _at("2024-11-25 13:00"), "Lunch")
    return engine


def test_events_are_merged_and_sorted():
    engine = _seeded_engine()

    events = engine.calendar.events(pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 25))

    assert [(e.type, e.start_at.format("HH:mm")) for e in events] == [
        (CalendarEventType.BOOKING, "10:00"),
        (CalendarEventType.BLOCK, "12:00"),
        (CalendarEventType.BOOKING, "15:00"),
    ]
    assert events[0].title == "Facial - Luis"
    assert events[1].title == "Lunch"
    assert events[1].booking_number is None


def test_end_date_is_inclusive():
    engine = _seeded_engine()

    events = engine.calendar.events(pendulum.date(2024, 11, 26), pendulum.date(2024, 11, 27))

    assert [e.customer_name for e in events] == ["Marta"]


def test_cancelled_entries_are_optional():
    engine = _seeded_engine()
    booking = engine.bookings.list_bookings()[0]
    engine.bookings.cancel_booking(booking.id)
    block = next(
        e for e in engine.calendar.events(pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 25))
        if e.type == CalendarEventType.BLOCK
    )
    engine.blocks.cancel_block(block.id)

    active = engine.calendar.events(pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 25))
    everything = engine.calendar.events(
        pendulum.date(2024, 11, 25), pendulum.date(2024, 11, 25), include_cancelled=True
    )

    assert len(active) == 1
    assert len(everything) == 3
    assert {e.status for e in everything} == {"PENDING", "CANCELLED"}
