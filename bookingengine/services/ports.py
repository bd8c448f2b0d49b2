"""
Ports consumed by the application services.

Storage, configuration, notification and payment are external
collaborators. The services only depend on these protocols so any adapter
(the in-memory store, a database, a stub in tests) can be plugged in.
"""

from __future__ import annotations

from typing import Any, List, Optional, Protocol

from pendulum import DateTime

from ..domain.models import Block, Booking, BookingStatus, HistoryEntry


class BookingRepository(Protocol):
    """
    Storage for the Booking aggregate.

    ``save`` must reject an occupying booking that overlaps another occupying
    booking or an active block by raising ``OverlapConstraintError``.
    """

    def save(self, booking: Booking) -> Booking:
        """Insert or update; assigns ``id`` on first save."""

    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        ...

    def find_by_number(self, booking_number: str) -> Optional[Booking]:
        ...

    def find_by_payment_reference(self, reference: str) -> Optional[Booking]:
        """Match a stored payment id or payment preference id."""

    def find_by_date_range(
        self, start: DateTime, end: DateTime, include_cancelled: bool = False
    ) -> List[Booking]:
        """Bookings whose range overlaps ``[start, end)``, ordered by start."""

    def list_all(self) -> List[Booking]:
        ...

    def list_by_status(self, status: BookingStatus) -> List[Booking]:
        ...

    def is_slot_available(
        self, start: DateTime, end: DateTime, exclude_booking_id: Optional[int] = None
    ) -> bool:
        """True when no occupying booking overlaps ``[start, end)``."""


class BlockRepository(Protocol):
    """Storage for the Block aggregate."""

    def save(self, block: Block) -> Block:
        ...

    def find_by_id(self, block_id: int) -> Optional[Block]:
        ...

    def find_by_number(self, block_number: str) -> Optional[Block]:
        ...

    def find_by_date_range(
        self, start: DateTime, end: DateTime, include_cancelled: bool = False
    ) -> List[Block]:
        ...

    def find_active_in_range(self, start: DateTime, end: DateTime) -> List[Block]:
        ...

    def exists_active_in_range(self, start: DateTime, end: DateTime) -> bool:
        ...


class HistoryRepository(Protocol):
    """Append-only storage for booking history entries."""

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        ...

    def find_by_booking_id(self, booking_id: int, newest_first: bool = False) -> List[HistoryEntry]:
        ...


class WriteLock(Protocol):
    """
    Serialization boundary around check-then-save sequences.

    Any context manager works, e.g. ``threading.RLock`` or a database
    transaction opened at SERIALIZABLE isolation.
    """

    def __enter__(self) -> Any:
        ...

    def __exit__(self, *exc_info: Any) -> Optional[bool]:
        ...


class ScheduleConfigSource(Protocol):
    """Provides the weekly business-hours document (mapping or JSON/YAML text)."""

    def load_weekly_schedule(self) -> Any:
        ...


class NotificationService(Protocol):
    """Outbound notifications; failures never undo a committed change."""

    def send_booking_confirmation(self, booking: Booking) -> None:
        ...


class PaymentGateway(Protocol):
    """Creates payment preferences for new bookings."""

    def create_booking_preference(self, booking: Booking) -> str:
        ...


__all__ = [
    "BlockRepository",
    "BookingRepository",
    "HistoryRepository",
    "NotificationService",
    "PaymentGateway",
    "ScheduleConfigSource",
    "WriteLock",
]
