"""
Domain models for the single-practitioner scheduling engine.

Bookings and blocks are independent aggregates that share one global
timeline. History entries reference a booking but are never owned by it.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date as Date, time
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

import pendulum
from pendulum import DateTime

from .exceptions import DomainRuleViolation, ValidationError

# The whole business is one shared resource: every collision check is global,
# never partitioned per service.
SINGLE_RESOURCE = True

SLOT_INTERVAL_MINUTES = 30
DEFAULT_TIMEZONE = "America/Argentina/Buenos_Aires"


def _now(now: Optional[DateTime] = None) -> DateTime:
    return now if now is not None else pendulum.now(DEFAULT_TIMEZONE)


def generate_number(prefix: str) -> str:
    """Return a short human-readable identifier such as ``BOOK-1A2B3C4D``."""
    return f"{prefix}-{uuid.uuid4().hex[:8].upper()}"


def is_aligned(moment: DateTime) -> bool:
    """Check that an instant sits on the 30-minute grid (:00 or :30)."""
    return (
        moment.minute % SLOT_INTERVAL_MINUTES == 0
        and moment.second == 0
        and moment.microsecond == 0
    )


def ensure_aligned(moment: DateTime, field_name: str) -> None:
    if not is_aligned(moment):
        raise ValidationError(
            f"{field_name} must be aligned to {SLOT_INTERVAL_MINUTES}-minute "
            f"intervals (:00 or :30), got {moment.format('HH:mm:ss')}"
        )


def ensure_valid_duration(duration_minutes: int) -> None:
    if duration_minutes <= 0 or duration_minutes % SLOT_INTERVAL_MINUTES != 0:
        raise ValidationError(
            f"Duration must be a positive multiple of {SLOT_INTERVAL_MINUTES} "
            f"minutes, got {duration_minutes}"
        )


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.

    Invariant: start must be before end. A range ending exactly when another
    starts does not overlap it.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if this range fully covers another."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        return TimeRange(start=max(self.start, other.start), end=min(self.end, other.end))

    def is_aligned(self) -> bool:
        return is_aligned(self.start) and is_aligned(self.end)

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class BusinessHours:
    """
    Opening hours for one weekday.

    A disabled day has no window at all.
    """
    enabled: bool
    open_time: Optional[time] = None
    close_time: Optional[time] = None

    @classmethod
    def closed(cls) -> "BusinessHours":
        return cls(enabled=False)

    def window_for(self, day: Date, timezone: str = DEFAULT_TIMEZONE) -> TimeRange | None:
        """
        Get the business-hours range for a specific date.
        Returns None if the day is closed.
        """
        if not self.enabled or self.open_time is None or self.close_time is None:
            return None

        start = pendulum.datetime(
            day.year, day.month, day.day,
            self.open_time.hour, self.open_time.minute,
            tz=timezone,
        )
        end = pendulum.datetime(
            day.year, day.month, day.day,
            self.close_time.hour, self.close_time.minute,
            tz=timezone,
        )

        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        if not self.enabled:
            return "closed"
        return f"{self.open_time:%H:%M} - {self.close_time:%H:%M}"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"

    @property
    def occupies_time(self) -> bool:
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    @property
    def is_terminal(self) -> bool:
        return not _BOOKING_TRANSITIONS[self]

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in _BOOKING_TRANSITIONS[self]


_BOOKING_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    NOT_REQUIRED = "NOT_REQUIRED"


class BlockStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class HistoryEventType(str, Enum):
    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    RESCHEDULED = "RESCHEDULED"
    CUSTOMER_UPDATED = "CUSTOMER_UPDATED"
    PAYMENT_UPDATED = "PAYMENT_UPDATED"


class HistoryActor(str, Enum):
    ADMIN = "ADMIN"
    SYSTEM = "SYSTEM"
    CUSTOMER = "CUSTOMER"


@dataclass(frozen=True)
class CustomerInfo:
    """
    Customer snapshot stored on a booking.

    Name, email and contact are required; comments are optional.
    """
    name: str
    email: str
    contact: str
    comments: Optional[str] = None

    def __post_init__(self):
        for field_name in ("name", "email", "contact"):
            value = getattr(self, field_name)
            if value is None or not str(value).strip():
                raise ValidationError(f"Customer {field_name} cannot be empty")

    def diff(self, other: "CustomerInfo") -> Dict[str, Dict[str, Any]]:
        """Return ``{field: {"old": ..., "new": ...}}`` for every changed field."""
        changes: Dict[str, Dict[str, Any]] = {}
        for field_name in ("name", "email", "contact", "comments"):
            old = getattr(self, field_name)
            new = getattr(other, field_name)
            if old != new:
                changes[field_name] = {"old": old, "new": new}
        return changes


@dataclass
class Booking:
    """
    Booking aggregate root.

    The end instant is always derived from ``start_at`` and
    ``duration_minutes`` so the two can never drift apart.
    """
    booking_number: str
    service_id: Optional[int]
    service_name: str
    customer: CustomerInfo
    start_at: DateTime
    duration_minutes: int
    amount: Optional[Decimal] = None
    status: BookingStatus = BookingStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_preference_id: Optional[str] = None
    payment_id: Optional[str] = None
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None
    confirmed_at: Optional[DateTime] = None
    cancelled_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        *,
        service_id: Optional[int],
        service_name: str,
        customer: CustomerInfo,
        start_at: DateTime,
        duration_minutes: int,
        amount: Optional[Decimal] = None,
        booking_number: Optional[str] = None,
        now: Optional[DateTime] = None,
    ) -> "Booking":
        """Build a new PENDING booking, validating alignment and duration."""
        ensure_aligned(start_at, "start_at")
        ensure_valid_duration(duration_minutes)

        created = _now(now)
        return cls(
            booking_number=booking_number or generate_number("BOOK"),
            service_id=service_id,
            service_name=service_name,
            customer=customer,
            start_at=start_at,
            duration_minutes=duration_minutes,
            amount=amount,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            created_at=created,
            updated_at=created,
        )

    @property
    def end_at(self) -> DateTime:
        return self.start_at.add(minutes=self.duration_minutes)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_at, end=self.end_at)

    def occupies_time(self) -> bool:
        """Only PENDING and CONFIRMED bookings take part in collision checks."""
        return self.status.occupies_time

    def ensure_mutable(self, action: str) -> None:
        """Guard for mutations that are only legal on non-terminal bookings."""
        if self.status.is_terminal:
            raise DomainRuleViolation(
                f"Cannot {action} {self.status.value.lower()} booking {self.booking_number}"
            )

    def _transition(self, target: BookingStatus, now: DateTime) -> BookingStatus:
        previous = self.status
        if not previous.can_transition_to(target):
            raise DomainRuleViolation(
                f"Booking {self.booking_number} cannot move from {previous.value} to {target.value}"
            )
        self.status = target
        self.updated_at = now
        return previous

    def confirm_payment(self, payment_id: str, now: Optional[DateTime] = None) -> bool:
        """
        Mark the booking as paid and confirmed.

        Returns False when the same payment was already applied (a duplicate
        notification), True when the booking changed.

        Raises:
            ValidationError: If the payment id is blank
            DomainRuleViolation: If already paid with another payment id, or
                the booking is no longer pending
        """
        if not payment_id or not payment_id.strip():
            raise ValidationError("Payment ID cannot be empty")

        if self.payment_status == PaymentStatus.PAID:
            if self.payment_id == payment_id:
                return False
            raise DomainRuleViolation(
                f"Payment already confirmed for booking {self.booking_number} "
                f"with a different payment id"
            )

        if self.status == BookingStatus.CANCELLED:
            raise DomainRuleViolation(
                f"Cannot confirm payment for cancelled booking {self.booking_number}"
            )

        moment = _now(now)
        self._transition(BookingStatus.CONFIRMED, moment)
        self.payment_id = payment_id
        self.payment_status = PaymentStatus.PAID
        self.confirmed_at = moment
        return True

    def mark_payment_failed(self, now: Optional[DateTime] = None) -> PaymentStatus:
        if self.payment_status == PaymentStatus.PAID:
            raise DomainRuleViolation(
                f"Booking {self.booking_number} is already paid; cannot mark payment as failed"
            )
        self.ensure_mutable("update payment of")

        previous = self.payment_status
        self.payment_status = PaymentStatus.FAILED
        self.updated_at = _now(now)
        return previous

    def attach_payment_preference(self, preference_id: str, now: Optional[DateTime] = None) -> None:
        self.payment_preference_id = preference_id
        self.updated_at = _now(now)

    def cancel(self, now: Optional[DateTime] = None) -> BookingStatus:
        """
        Cancel this booking.

        Cancelling twice, or cancelling a completed booking, is rejected.
        """
        if self.status == BookingStatus.CANCELLED:
            raise DomainRuleViolation(f"Booking {self.booking_number} is already cancelled")
        if self.status == BookingStatus.COMPLETED:
            raise DomainRuleViolation(f"Cannot cancel completed booking {self.booking_number}")

        moment = _now(now)
        previous = self._transition(BookingStatus.CANCELLED, moment)
        self.cancelled_at = moment
        return previous

    def complete(self, now: Optional[DateTime] = None) -> BookingStatus:
        if self.status != BookingStatus.CONFIRMED:
            raise DomainRuleViolation(
                f"Can only complete confirmed bookings. Current status: {self.status.value}"
            )
        return self._transition(BookingStatus.COMPLETED, _now(now))

    def reschedule(self, new_start_at: DateTime, now: Optional[DateTime] = None) -> DateTime:
        """Move the booking, keeping its duration. Returns the old start."""
        self.ensure_mutable("reschedule")
        ensure_aligned(new_start_at, "new_start_at")

        previous = self.start_at
        self.start_at = new_start_at
        self.updated_at = _now(now)
        return previous

    def update_customer(
        self, customer: CustomerInfo, now: Optional[DateTime] = None
    ) -> Dict[str, Dict[str, Any]]:
        self.ensure_mutable("update customer of")

        changes = self.customer.diff(customer)
        if changes:
            self.customer = customer
            self.updated_at = _now(now)
        return changes


@dataclass
class Block:
    """
    Block aggregate root: an administrator-imposed closure of a time range.
    """
    block_number: str
    reason: str
    start_at: DateTime
    end_at: DateTime
    status: BlockStatus = BlockStatus.ACTIVE
    created_at: Optional[DateTime] = None
    updated_at: Optional[DateTime] = None
    cancelled_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        *,
        reason: str,
        start_at: DateTime,
        end_at: DateTime,
        block_number: Optional[str] = None,
        now: Optional[DateTime] = None,
    ) -> "Block":
        """Build a new ACTIVE block, validating range, alignment and reason."""
        ensure_aligned(start_at, "start_at")
        ensure_aligned(end_at, "end_at")
        if end_at <= start_at:
            raise ValidationError("Block end time must be after start time")
        if reason is None or not reason.strip():
            raise ValidationError("Block reason cannot be empty")

        created = _now(now)
        return cls(
            block_number=block_number or generate_number("BLOCK"),
            reason=reason.strip(),
            start_at=start_at,
            end_at=end_at,
            status=BlockStatus.ACTIVE,
            created_at=created,
            updated_at=created,
        )

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start_at, end=self.end_at)

    def duration_minutes(self) -> int:
        return self.time_range.duration_minutes()

    def occupies_time(self) -> bool:
        return self.status == BlockStatus.ACTIVE

    def covers(self, window: TimeRange) -> bool:
        """Check whether this block spans the whole window."""
        return self.time_range.contains(window)

    def cancel(self, now: Optional[DateTime] = None) -> None:
        if self.status == BlockStatus.CANCELLED:
            raise DomainRuleViolation(f"Block {self.block_number} is already cancelled")

        moment = _now(now)
        self.status = BlockStatus.CANCELLED
        self.cancelled_at = moment
        self.updated_at = moment


@dataclass(frozen=True)
class HistoryEntry:
    """
    Append-only audit entry describing one change to a booking.
    """
    booking_id: int
    event_type: HistoryEventType
    actor: HistoryActor
    payload: Mapping[str, Any] = field(default_factory=dict)
    created_at: Optional[DateTime] = None
    id: Optional[int] = None

    @classmethod
    def create(
        cls,
        booking_id: int,
        event_type: HistoryEventType,
        actor: HistoryActor,
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[DateTime] = None,
    ) -> "HistoryEntry":
        if booking_id is None:
            raise ValidationError("Booking ID cannot be empty")
        if event_type is None:
            raise ValidationError("Event type cannot be empty")
        if actor is None:
            raise ValidationError("Actor cannot be empty")

        try:
            event_type = HistoryEventType(event_type)
            actor = HistoryActor(actor)
        except ValueError as exc:
            raise ValidationError(f"Invalid history entry: {exc}") from exc

        return cls(
            booking_id=booking_id,
            event_type=event_type,
            actor=actor,
            payload=dict(payload or {}),
            created_at=_now(now),
        )
