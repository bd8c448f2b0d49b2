"""
In-memory storage adapter for bookings, blocks and booking history.

Stands in for a database: aggregates (whose fields are all immutable
values) are copied on the way in and out, so a caller mutating an object it
loaded never changes stored state until it saves again. ``save`` enforces
the cross-aggregate no-overlap rule the way a range-exclusion constraint
would.
"""

import copy
import dataclasses
import itertools
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

import pendulum
import yaml
from pendulum import DateTime

from ..domain.exceptions import OverlapConstraintError
from ..domain.models import (
    DEFAULT_TIMEZONE,
    Block,
    BlockStatus,
    Booking,
    BookingStatus,
    CustomerInfo,
    HistoryEntry,
    PaymentStatus,
    TimeRange,
)

logger = logging.getLogger(__name__)


def _query_range(start: DateTime, end: DateTime) -> Optional[TimeRange]:
    if start >= end:
        return None
    return TimeRange(start=start, end=end)


class MemoryStorage:
    """
    Shared tables plus the write lock that serializes check-then-save.

    Bookings and blocks share one timeline, so both repositories must be
    built on the same storage instance.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.bookings: Dict[int, Booking] = {}
        self.blocks: Dict[int, Block] = {}
        self.history: List[HistoryEntry] = []
        self._booking_ids = itertools.count(1)
        self._block_ids = itertools.count(1)
        self._history_ids = itertools.count(1)

    def next_booking_id(self) -> int:
        return next(self._booking_ids)

    def next_block_id(self) -> int:
        return next(self._block_ids)

    def next_history_id(self) -> int:
        return next(self._history_ids)

    def booking_rows(self) -> List[Booking]:
        """Snapshot of the bookings table, safe to filter while writers run."""
        with self.lock:
            return list(self.bookings.values())

    def block_rows(self) -> List[Block]:
        with self.lock:
            return list(self.blocks.values())

    def history_rows(self) -> List[HistoryEntry]:
        with self.lock:
            return list(self.history)

    def check_no_overlap(
        self,
        candidate: TimeRange,
        *,
        booking_id: Optional[int] = None,
        block_id: Optional[int] = None,
    ) -> None:
        """
        Raise if ``candidate`` overlaps any other occupying entry.

        Raises:
            OverlapConstraintError: On the first overlapping booking or block
        """
        for other in self.bookings.values():
            if other.id == booking_id or not other.occupies_time():
                continue
            if other.time_range.overlaps(candidate):
                raise OverlapConstraintError(
                    f"Range {candidate} overlaps booking {other.booking_number}", kind="booking"
                )

        for other in self.blocks.values():
            if other.id == block_id or not other.occupies_time():
                continue
            if other.time_range.overlaps(candidate):
                raise OverlapConstraintError(
                    f"Range {candidate} overlaps block {other.block_number}", kind="block"
                )


class MemoryBookingRepository:
    """Booking repository backed by :class:`MemoryStorage`."""

    def __init__(self, storage: MemoryStorage) -> None:
        self._storage = storage

    def save(self, booking: Booking) -> Booking:
        with self._storage.lock:
            for other in self._storage.bookings.values():
                if other.booking_number == booking.booking_number and other.id != booking.id:
                    raise ValueError(f"Duplicate booking number {booking.booking_number}")

            if booking.occupies_time():
                self._storage.check_no_overlap(booking.time_range, booking_id=booking.id)

            stored = copy.copy(booking)
            if stored.id is None:
                stored.id = self._storage.next_booking_id()
            self._storage.bookings[stored.id] = stored
            return copy.copy(stored)

    def find_by_id(self, booking_id: int) -> Optional[Booking]:
        booking = self._storage.bookings.get(booking_id)
        return copy.copy(booking) if booking else None

    def find_by_number(self, booking_number: str) -> Optional[Booking]:
        return self._first(lambda b: b.booking_number == booking_number)

    def find_by_payment_reference(self, reference: str) -> Optional[Booking]:
        if not reference:
            return None
        booking = self._first(lambda b: b.payment_id == reference)
        return booking or self._first(lambda b: b.payment_preference_id == reference)

    def find_by_date_range(
        self, start: DateTime, end: DateTime, include_cancelled: bool = False
    ) -> List[Booking]:
        window = _query_range(start, end)
        if window is None:
            return []
        return self._sorted(
            b for b in self._storage.booking_rows()
            if (include_cancelled or b.status != BookingStatus.CANCELLED)
            and b.time_range.overlaps(window)
        )

    def list_all(self) -> List[Booking]:
        return self._sorted(self._storage.booking_rows())

    def list_by_status(self, status: BookingStatus) -> List[Booking]:
        return self._sorted(b for b in self._storage.booking_rows() if b.status == status)

    def is_slot_available(
        self, start: DateTime, end: DateTime, exclude_booking_id: Optional[int] = None
    ) -> bool:
        window = _query_range(start, end)
        if window is None:
            return True
        return not any(
            b.occupies_time() and b.id != exclude_booking_id and b.time_range.overlaps(window)
            for b in self._storage.booking_rows()
        )

    def _first(self, predicate) -> Optional[Booking]:
        for booking in self._storage.booking_rows():
            if predicate(booking):
                return copy.copy(booking)
        return None

    @staticmethod
    def _sorted(bookings) -> List[Booking]:
        return [copy.copy(b) for b in sorted(bookings, key=lambda b: (b.start_at, b.id))]


class MemoryBlockRepository:
    """Block repository backed by :class:`MemoryStorage`."""

    def __init__(self, storage: MemoryStorage) -> None:
        self._storage = storage

    def save(self, block: Block) -> Block:
        with self._storage.lock:
            for other in self._storage.blocks.values():
                if other.block_number == block.block_number and other.id != block.id:
                    raise ValueError(f"Duplicate block number {block.block_number}")

            if block.occupies_time():
                self._storage.check_no_overlap(block.time_range, block_id=block.id)

            stored = copy.copy(block)
            if stored.id is None:
                stored.id = self._storage.next_block_id()
            self._storage.blocks[stored.id] = stored
            return copy.copy(stored)

    def find_by_id(self, block_id: int) -> Optional[Block]:
        block = self._storage.blocks.get(block_id)
        return copy.copy(block) if block else None

    def find_by_number(self, block_number: str) -> Optional[Block]:
        for block in self._storage.block_rows():
            if block.block_number == block_number:
                return copy.copy(block)
        return None

    def find_by_date_range(
        self, start: DateTime, end: DateTime, include_cancelled: bool = False
    ) -> List[Block]:
        window = _query_range(start, end)
        if window is None:
            return []
        return self._sorted(
            b for b in self._storage.block_rows()
            if (include_cancelled or b.occupies_time()) and b.time_range.overlaps(window)
        )

    def find_active_in_range(self, start: DateTime, end: DateTime) -> List[Block]:
        return self.find_by_date_range(start, end, include_cancelled=False)

    def exists_active_in_range(self, start: DateTime, end: DateTime) -> bool:
        window = _query_range(start, end)
        if window is None:
            return False
        return any(
            b.occupies_time() and b.time_range.overlaps(window)
            for b in self._storage.block_rows()
        )

    @staticmethod
    def _sorted(blocks) -> List[Block]:
        return [copy.copy(b) for b in sorted(blocks, key=lambda b: (b.start_at, b.id))]


def _detached(entry: HistoryEntry) -> HistoryEntry:
    """Copy an entry with its own payload so callers cannot rewrite history."""
    return dataclasses.replace(entry, payload=copy.deepcopy(dict(entry.payload)))


class MemoryHistoryRepository:
    """Insert-only history table backed by :class:`MemoryStorage`."""

    def __init__(self, storage: MemoryStorage) -> None:
        self._storage = storage

    def append(self, entry: HistoryEntry) -> HistoryEntry:
        with self._storage.lock:
            stored = HistoryEntry(
                booking_id=entry.booking_id,
                event_type=entry.event_type,
                actor=entry.actor,
                payload=copy.deepcopy(dict(entry.payload)),
                created_at=entry.created_at,
                id=self._storage.next_history_id(),
            )
            self._storage.history.append(stored)
            return _detached(stored)

    def find_by_booking_id(self, booking_id: int, newest_first: bool = False) -> List[HistoryEntry]:
        entries = [e for e in self._storage.history_rows() if e.booking_id == booking_id]
        entries.sort(key=lambda e: (e.created_at, e.id), reverse=newest_first)
        return [_detached(e) for e in entries]


def load_fixture(fixture_path: Path, storage: MemoryStorage, timezone: str = DEFAULT_TIMEZONE) -> None:
    """
    Seed the storage from a YAML fixture of existing bookings and blocks.

    Expected shape::

        bookings:
          - service_name: Facial
            start: "2024-11-25 10:00"
            duration_minutes: 60
            status: CONFIRMED
            customer: {name: Ana, email: ana@example.com, contact: "+5411"}
        blocks:
          - reason: Holiday
            start: "2024-11-26 00:00"
            end: "2024-11-27 00:00"

    Raises:
        FileNotFoundError: If the fixture does not exist
        ValueError: If the file is not a mapping or an entry cannot be parsed
    """
    if not fixture_path.exists():
        raise FileNotFoundError(f"Fixture file not found: {fixture_path}")

    try:
        with open(fixture_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {fixture_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Fixture {fixture_path} must contain a mapping at the root level.")

    bookings = MemoryBookingRepository(storage)
    blocks = MemoryBlockRepository(storage)

    for entry in data.get("blocks", []):
        try:
            block = Block.create(
                reason=entry["reason"],
                start_at=pendulum.parse(str(entry["start"]), tz=timezone),
                end_at=pendulum.parse(str(entry["end"]), tz=timezone),
                block_number=entry.get("number"),
            )
            block.status = BlockStatus(entry.get("status", BlockStatus.ACTIVE.value))
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid block entry {entry!r}: {exc}") from exc
        blocks.save(block)

    for entry in data.get("bookings", []):
        try:
            customer = entry.get("customer", {})
            booking = Booking.create(
                service_id=entry.get("service_id"),
                service_name=entry.get("service_name", ""),
                customer=CustomerInfo(
                    name=customer.get("name", ""),
                    email=customer.get("email", ""),
                    contact=customer.get("contact", ""),
                    comments=customer.get("comments"),
                ),
                start_at=pendulum.parse(str(entry["start"]), tz=timezone),
                duration_minutes=int(entry["duration_minutes"]),
                booking_number=entry.get("number"),
            )
            booking.status = BookingStatus(entry.get("status", BookingStatus.PENDING.value))
            booking.payment_status = PaymentStatus(
                entry.get("payment_status", PaymentStatus.PENDING.value)
            )
        except (KeyError, TypeError) as exc:
            raise ValueError(f"Invalid booking entry {entry!r}: {exc}") from exc
        bookings.save(booking)

    logger.info(
        "Loaded %d bookings and %d blocks from %s",
        len(storage.bookings), len(storage.blocks), fixture_path,
    )
