"""
Append-only audit trail for booking changes.
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

import pendulum
from pendulum import DateTime

from ..domain.models import (
    DEFAULT_TIMEZONE,
    BookingStatus,
    HistoryActor,
    HistoryEntry,
    HistoryEventType,
    PaymentStatus,
)
from .ports import HistoryRepository

logger = logging.getLogger(__name__)


class BookingHistoryRecorder:
    """
    Records history entries for bookings.

    Entries are only ever inserted; there is no update or delete path.
    """

    def __init__(
        self,
        history_repository: HistoryRepository,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._history_repository = history_repository
        self._clock = clock or (lambda: pendulum.now(DEFAULT_TIMEZONE))

    def record(
        self,
        booking_id: int,
        event_type: HistoryEventType,
        payload: Optional[Mapping[str, Any]] = None,
        actor: HistoryActor = HistoryActor.SYSTEM,
    ) -> HistoryEntry:
        entry = HistoryEntry.create(booking_id, event_type, actor, payload, now=self._clock())
        saved = self._history_repository.append(entry)
        logger.debug("Recorded %s event for booking %s", entry.event_type.value, booking_id)
        return saved

    def history_for(self, booking_id: int, newest_first: bool = False) -> List[HistoryEntry]:
        """Entries for a booking, oldest first unless ``newest_first`` is set."""
        return self._history_repository.find_by_booking_id(booking_id, newest_first=newest_first)

    def record_created(self, booking_id: int, booking_number: str, actor: HistoryActor) -> HistoryEntry:
        return self.record(
            booking_id,
            HistoryEventType.CREATED,
            {"booking_number": booking_number, "action": "booking created"},
            actor,
        )

    def record_status_changed(
        self,
        booking_id: int,
        old_status: BookingStatus,
        new_status: BookingStatus,
        actor: HistoryActor,
    ) -> HistoryEntry:
        return self.record(
            booking_id,
            HistoryEventType.STATUS_CHANGED,
            {"old_status": old_status.value, "new_status": new_status.value},
            actor,
        )

    def record_rescheduled(
        self,
        booking_id: int,
        old_start_at: DateTime,
        new_start_at: DateTime,
        actor: HistoryActor,
    ) -> HistoryEntry:
        return self.record(
            booking_id,
            HistoryEventType.RESCHEDULED,
            {
                "old_start_at": old_start_at.to_iso8601_string(),
                "new_start_at": new_start_at.to_iso8601_string(),
            },
            actor,
        )

    def record_customer_updated(
        self,
        booking_id: int,
        changes: Dict[str, Dict[str, Any]],
        actor: HistoryActor,
    ) -> HistoryEntry:
        return self.record(booking_id, HistoryEventType.CUSTOMER_UPDATED, changes, actor)

    def record_payment_updated(
        self,
        booking_id: int,
        old_payment_status: PaymentStatus,
        new_payment_status: PaymentStatus,
        payment_id: Optional[str],
        actor: HistoryActor,
    ) -> HistoryEntry:
        return self.record(
            booking_id,
            HistoryEventType.PAYMENT_UPDATED,
            {
                "old_payment_status": old_payment_status.value,
                "new_payment_status": new_payment_status.value,
                "payment_id": payment_id or "",
            },
            actor,
        )
