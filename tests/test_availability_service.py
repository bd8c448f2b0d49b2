"""
Tests for the AvailabilityService read path.
"""

import threading
from datetime import time

import pendulum

from bookingengine.adapters.schedule_source import StaticScheduleSource
from bookingengine.config import AppConfig
from bookingengine.wiring import build_memory_engine

TZ = "America/Argentina/Buenos_Aires"
NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz=TZ)
MONDAY = pendulum.date(2024, 11, 25)


class BrokenScheduleSource:
    """Schedule source whose backing store is unreachable."""

    def load_weekly_schedule(self):
        raise OSError("configuration store unreachable")


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _build_engine(schedule=None, schedule_source=None):
    config = AppConfig(schedule=schedule)
    return build_memory_engine(config, schedule_source=schedule_source, clock=lambda: NOW)


def _book(engine, hour: int, minute: int = 0, duration: int = 60):
    return engine.bookings.create_booking(
        service_id=1,
        service_name="Facial",
        customer_name="Ana",
        customer_email="ana@example.com",
        customer_contact="555",
        booking_date=MONDAY,
        booking_time=time(hour, minute),
        duration_minutes=duration,
    )


def _labels(slots):
    return [slot.format("HH:mm") for slot in slots]


def test_default_hours_without_schedule():
    """No configured schedule means the 09:00-19:00 fallback."""
    engine = _build_engine()

    slots = engine.availability.compute_slots(MONDAY, 60)

    assert _labels(slots)[0] == "09:00"
    assert _labels(slots)[-1] == "18:00"
    assert len(slots) == 19


def test_configured_schedule():
    engine = _build_engine(schedule={"monday": {"enabled": True, "startTime": "10:00", "endTime": "13:00"}})

    slots = engine.availability.compute_slots(MONDAY, 60)

    assert _labels(slots) == ["10:00", "10:30", "11:00", "11:30", "12:00"]


def test_closed_day():
    engine = _build_engine(schedule={"monday": {"enabled": False}})

    assert engine.availability.compute_slots(MONDAY, 60) == []


def test_broken_source_falls_back():
    engine = _build_engine(schedule_source=BrokenScheduleSource())

    assert len(engine.availability.compute_slots(MONDAY, 60)) == 19


def test_bookings_and_blocks_are_excluded():
    engine = _build_engine()
    _book(engine, 10)
    engine.blocks.create_block(_at("2024-11-25 15:00"), _at("2024-11-25 17:00"), "Supplier visit")

    labels = _labels(engine.availability.compute_slots(MONDAY, 60))

    assert "09:00" in labels
    assert "10:00" not in labels
    assert "11:00" in labels
    assert "14:00" in labels
    assert "14:30" not in labels
    assert "16:30" not in labels
    assert "17:00" in labels


def test_cancellation_frees_slots():
    engine = _build_engine()
    booking = _book(engine, 10)
    assert "10:00" not in _labels(engine.availability.compute_slots(MONDAY, 60))

    engine.bookings.cancel_booking(booking.id)

    assert "10:00" in _labels(engine.availability.compute_slots(MONDAY, 60))


def test_full_day_block():
    engine = _build_engine()
    engine.blocks.create_block(_at("2024-11-25 00:00"), _at("2024-11-26 00:00"), "Holiday")

    assert engine.availability.compute_slots(MONDAY, 30) == []


def test_rescheduled_booking_moves_occupied_time():
    engine = _build_engine()
    booking = _book(engine, 10)

    engine.bookings.reschedule_booking(booking.id, _at("2024-11-25 14:00"))
    labels = _labels(engine.availability.compute_slots(MONDAY, 60))

    assert "10:00" in labels
    assert "14:00" not in labels


def test_slots_are_stable_between_reads():
    engine = _build_engine()
    _book(engine, 12, 30, duration=90)

    assert engine.availability.compute_slots(MONDAY, 60) == engine.availability.compute_slots(MONDAY, 60)


def test_static_source_text_document():
    engine = _build_engine(
        schedule_source=StaticScheduleSource(
            '{"monday": {"enabled": true, "startTime": "09:00", "endTime": "10:00"}}'
        )
    )

    assert _labels(engine.availability.compute_slots(MONDAY, 30)) == ["09:00", "09:30"]


def test_reads_while_bookings_are_created():
    engine = _build_engine()
    errors = []
    done = threading.Event()

    def write():
        for day in range(25, 31):
            for hour in range(9, 19):
                engine.bookings.create_booking(
                    service_id=1,
                    service_name="Facial",
                    customer_name="Ana",
                    customer_email="ana@example.com",
                    customer_contact="555",
                    booking_date=pendulum.date(2024, 11, day),
                    booking_time=time(hour, 0),
                    duration_minutes=30,
                )
        done.set()

    def read():
        try:
            while not done.is_set():
                engine.availability.compute_slots(MONDAY, 60)
        except Exception as exc:
            errors.append(exc)

    readers = [threading.Thread(target=read) for _ in range(3)]
    writer = threading.Thread(target=write)
    for thread in readers:
        thread.start()
    writer.start()
    writer.join()
    for thread in readers:
        thread.join()

    assert errors == []
    assert len(engine.availability.compute_slots(MONDAY, 30)) == 10
