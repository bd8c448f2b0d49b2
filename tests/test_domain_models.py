"""
Tests for domain models.
"""

from datetime import time

import pendulum
import pytest

from bookingengine.domain.exceptions import DomainRuleViolation, ValidationError
from bookingengine.domain.models import (
    Block,
    BlockStatus,
    Booking,
    BookingStatus,
    BusinessHours,
    CustomerInfo,
    HistoryActor,
    HistoryEntry,
    HistoryEventType,
    PaymentStatus,
    TimeRange,
    is_aligned,
)

TZ = "America/Argentina/Buenos_Aires"
NOW = pendulum.datetime(2024, 11, 20, 12, 0, tz=TZ)


def _at(text: str):
    return pendulum.parse(text, tz=TZ)


def _customer(**overrides) -> CustomerInfo:
    values = {"name": "Ana Gomez", "email": "ana@example.com", "contact": "+54 11 5555 0000"}
    values.update(overrides)
    return CustomerInfo(**values)


def _booking(start: str = "2024-11-25 10:00", duration: int = 60) -> Booking:
    return Booking.create(
        service_id=1,
        service_name="Facial",
        customer=_customer(),
        start_at=_at(start),
        duration_minutes=duration,
        now=NOW,
    )


class TestTimeRange:
    """Tests for TimeRange."""

    def test_valid_time_range(self):
        """Test creating a valid time range."""
        tr = TimeRange(start=_at("2024-11-25 09:00"), end=_at("2024-11-25 10:00"))

        assert tr.duration_minutes() == 60

    def test_invalid_time_range(self):
        """Test that start must be before end."""
        with pytest.raises(ValueError):
            TimeRange(start=_at("2024-11-25 10:00"), end=_at("2024-11-25 09:00"))

        with pytest.raises(ValueError):
            TimeRange(start=_at("2024-11-25 10:00"), end=_at("2024-11-25 10:00"))

    def test_overlaps(self):
        """Test overlap detection."""
        tr1 = TimeRange(start=_at("2024-11-25 10:00"), end=_at("2024-11-25 11:00"))
        tr2 = TimeRange(start=_at("2024-11-25 10:30"), end=_at("2024-11-25 11:00"))
        tr3 = TimeRange(start=_at("2024-11-25 11:00"), end=_at("2024-11-25 12:00"))

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)  # Back-to-back ranges do not collide
        assert not tr3.overlaps(tr1)

    def test_intersect(self):
        """Test intersection calculation."""
        tr1 = TimeRange(start=_at("2024-11-25 09:00"), end=_at("2024-11-25 12:00"))
        tr2 = TimeRange(start=_at("2024-11-25 11:00"), end=_at("2024-11-25 14:00"))

        intersection = tr1.intersect(tr2)

        assert intersection is not None
        assert intersection.start == _at("2024-11-25 11:00")
        assert intersection.end == _at("2024-11-25 12:00")

    def test_contains(self):
        outer = TimeRange(start=_at("2024-11-25 00:00"), end=_at("2024-11-26 00:00"))
        inner = TimeRange(start=_at("2024-11-25 09:00"), end=_at("2024-11-25 19:00"))

        assert outer.contains(inner)
        assert not inner.contains(outer)


class TestAlignment:
    """Tests for the 30-minute grid check."""

    def test_aligned_instants(self):
        assert is_aligned(_at("2024-11-25 10:00"))
        assert is_aligned(_at("2024-11-25 10:30"))

    def test_misaligned_instants(self):
        assert not is_aligned(_at("2024-11-25 10:15"))
        assert not is_aligned(_at("2024-11-25 10:30:01"))


class TestBusinessHours:
    """Tests for BusinessHours."""

    def test_window_for_open_day(self):
        hours = BusinessHours(enabled=True, open_time=time(9, 0), close_time=time(19, 0))

        window = hours.window_for(pendulum.date(2024, 11, 25), TZ)

        assert window.start == _at("2024-11-25 09:00")
        assert window.end == _at("2024-11-25 19:00")

    def test_closed_day_has_no_window(self):
        assert BusinessHours.closed().window_for(pendulum.date(2024, 11, 25), TZ) is None
        assert str(BusinessHours.closed()) == "closed"


class TestBookingStatus:
    """Tests for booking status rules."""

    def test_occupying_statuses(self):
        assert BookingStatus.PENDING.occupies_time
        assert BookingStatus.CONFIRMED.occupies_time
        assert not BookingStatus.CANCELLED.occupies_time
        assert not BookingStatus.COMPLETED.occupies_time

    def test_terminal_statuses(self):
        assert BookingStatus.CANCELLED.is_terminal
        assert BookingStatus.COMPLETED.is_terminal
        assert not BookingStatus.PENDING.is_terminal

    def test_transitions(self):
        assert BookingStatus.PENDING.can_transition_to(BookingStatus.CONFIRMED)
        assert BookingStatus.CONFIRMED.can_transition_to(BookingStatus.COMPLETED)
        assert not BookingStatus.PENDING.can_transition_to(BookingStatus.COMPLETED)
        assert not BookingStatus.CANCELLED.can_transition_to(BookingStatus.PENDING)


class TestCustomerInfo:
    """Tests for the customer snapshot."""

    @pytest.mark.parametrize("field_name", ["name", "email", "contact"])
    def test_required_fields(self, field_name):
        with pytest.raises(ValidationError):
            _customer(**{field_name: "  "})

    def test_diff_reports_changed_fields_only(self):
        old = _customer()
        new = _customer(email="ana.g@example.com", comments="Prefers mornings")

        assert old.diff(new) == {
            "email": {"old": "ana@example.com", "new": "ana.g@example.com"},
            "comments": {"old": None, "new": "Prefers mornings"},
        }
        assert old.diff(_customer()) == {}


class TestBooking:
    """Tests for the Booking aggregate."""

    def test_create_defaults(self):
        booking = _booking()

        assert booking.status == BookingStatus.PENDING
        assert booking.payment_status == PaymentStatus.PENDING
        assert booking.booking_number.startswith("BOOK-")
        assert booking.end_at == _at("2024-11-25 11:00")
        assert booking.created_at == NOW

    def test_create_rejects_misaligned_start(self):
        with pytest.raises(ValidationError):
            _booking(start="2024-11-25 10:15")

    @pytest.mark.parametrize("duration", [0, -30, 45])
    def test_create_rejects_invalid_duration(self, duration):
        with pytest.raises(ValidationError):
            _booking(duration=duration)

    def test_confirm_payment(self):
        booking = _booking()

        assert booking.confirm_payment("PAY-1", now=NOW) is True
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.payment_status == PaymentStatus.PAID
        assert booking.payment_id == "PAY-1"
        assert booking.confirmed_at == NOW

    def test_confirm_payment_twice_with_same_id_is_noop(self):
        booking = _booking()
        booking.confirm_payment("PAY-1", now=NOW)

        assert booking.confirm_payment("PAY-1", now=NOW.add(hours=1)) is False
        assert booking.confirmed_at == NOW

    def test_confirm_payment_with_different_id_is_rejected(self):
        booking = _booking()
        booking.confirm_payment("PAY-1", now=NOW)

        with pytest.raises(DomainRuleViolation):
            booking.confirm_payment("PAY-2", now=NOW)
        assert booking.payment_id == "PAY-1"

    def test_confirm_payment_requires_id(self):
        with pytest.raises(ValidationError):
            _booking().confirm_payment(" ", now=NOW)

    def test_confirm_payment_on_cancelled_booking(self):
        booking = _booking()
        booking.cancel(now=NOW)

        with pytest.raises(DomainRuleViolation):
            booking.confirm_payment("PAY-1", now=NOW)

    def test_cancel(self):
        booking = _booking()

        previous = booking.cancel(now=NOW)

        assert previous == BookingStatus.PENDING
        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancelled_at == NOW
        assert not booking.occupies_time()

    def test_cancel_twice_is_rejected(self):
        booking = _booking()
        booking.cancel(now=NOW)

        with pytest.raises(DomainRuleViolation):
            booking.cancel(now=NOW)

    def test_complete_requires_confirmed(self):
        booking = _booking()
        with pytest.raises(DomainRuleViolation):
            booking.complete(now=NOW)

        booking.confirm_payment("PAY-1", now=NOW)
        assert booking.complete(now=NOW) == BookingStatus.CONFIRMED
        assert booking.status == BookingStatus.COMPLETED

        with pytest.raises(DomainRuleViolation):
            booking.cancel(now=NOW)

    def test_reschedule_keeps_duration(self):
        booking = _booking(duration=90)

        old_start = booking.reschedule(_at("2024-11-25 14:00"), now=NOW)

        assert old_start == _at("2024-11-25 10:00")
        assert booking.duration_minutes == 90
        assert booking.end_at == _at("2024-11-25 15:30")

    def test_reschedule_terminal_booking_is_rejected(self):
        booking = _booking()
        booking.cancel(now=NOW)

        with pytest.raises(DomainRuleViolation):
            booking.reschedule(_at("2024-11-25 14:00"), now=NOW)

    def test_update_customer_returns_changes(self):
        booking = _booking()

        changes = booking.update_customer(_customer(name="Ana Maria Gomez"), now=NOW)

        assert changes == {"name": {"old": "Ana Gomez", "new": "Ana Maria Gomez"}}
        assert booking.customer.name == "Ana Maria Gomez"

    def test_mark_payment_failed_keeps_status(self):
        booking = _booking()

        previous = booking.mark_payment_failed(now=NOW)

        assert previous == PaymentStatus.PENDING
        assert booking.payment_status == PaymentStatus.FAILED
        assert booking.status == BookingStatus.PENDING


class TestBlock:
    """Tests for the Block aggregate."""

    def test_create(self):
        block = Block.create(
            reason="  Holiday ",
            start_at=_at("2024-11-25 00:00"),
            end_at=_at("2024-11-26 00:00"),
            now=NOW,
        )

        assert block.status == BlockStatus.ACTIVE
        assert block.reason == "Holiday"
        assert block.block_number.startswith("BLOCK-")
        assert block.duration_minutes() == 24 * 60

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            Block.create(reason="Holiday", start_at=_at("2024-11-25 12:00"), end_at=_at("2024-11-25 12:00"))

    def test_reason_required(self):
        with pytest.raises(ValidationError):
            Block.create(reason="", start_at=_at("2024-11-25 12:00"), end_at=_at("2024-11-25 13:00"))

    def test_misaligned_end(self):
        with pytest.raises(ValidationError):
            Block.create(reason="Lunch", start_at=_at("2024-11-25 12:00"), end_at=_at("2024-11-25 12:45"))

    def test_cancel_twice_is_rejected(self):
        block = Block.create(reason="Lunch", start_at=_at("2024-11-25 12:00"), end_at=_at("2024-11-25 13:00"))
        block.cancel(now=NOW)

        assert not block.occupies_time()
        with pytest.raises(DomainRuleViolation):
            block.cancel(now=NOW)


class TestHistoryEntry:
    """Tests for HistoryEntry."""

    def test_create(self):
        entry = HistoryEntry.create(
            1, HistoryEventType.CREATED, HistoryActor.CUSTOMER, {"booking_number": "BOOK-1"}, now=NOW
        )

        assert entry.created_at == NOW
        assert entry.payload == {"booking_number": "BOOK-1"}

    def test_booking_id_required(self):
        with pytest.raises(ValidationError):
            HistoryEntry.create(None, HistoryEventType.CREATED, HistoryActor.SYSTEM)

    @pytest.mark.parametrize(
        "event_type, actor",
        [("RENAMED", HistoryActor.ADMIN), (HistoryEventType.CREATED, "ROBOT")],
    )
    def test_unknown_event_type_or_actor(self, event_type, actor):
        with pytest.raises(ValidationError):
            HistoryEntry.create(1, event_type, actor)
