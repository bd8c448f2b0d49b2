"""
Command handlers for the Booking aggregate.

Each write follows the same shape: validate input, check collisions against
bookings and blocks while holding the write lock, persist, then append to the
audit trail. Outbound collaborators (payment preferences, notifications) run
after the state change is stored and can never undo it.
"""

from __future__ import annotations

import logging
import threading
from datetime import date as Date, time
from decimal import Decimal
from typing import Callable, List, Optional

import pendulum
from pendulum import DateTime

from ..domain.collision import colliding_blocks, colliding_bookings
from ..domain.exceptions import ConflictError, NotFoundError, OverlapConstraintError, SchedulingError
from ..domain.models import (
    DEFAULT_TIMEZONE,
    Booking,
    BookingStatus,
    CustomerInfo,
    HistoryActor,
    HistoryEntry,
    TimeRange,
    ensure_aligned,
    ensure_valid_duration,
)
from .history import BookingHistoryRecorder
from .ports import (
    BlockRepository,
    BookingRepository,
    NotificationService,
    PaymentGateway,
    WriteLock,
)

logger = logging.getLogger(__name__)

EXTERNAL_REFERENCE_PREFIX = "BOOKING-"


def _range_label(time_range: TimeRange) -> str:
    return f"{time_range.start.format('HH:mm')} - {time_range.end.format('HH:mm')}"


class BookingService:
    """
    Orchestrates booking lifecycle changes.

    The write lock must be shared with the ``BlockService`` working on the
    same storage, since bookings and blocks compete for one timeline.
    """

    def __init__(
        self,
        booking_repository: BookingRepository,
        block_repository: BlockRepository,
        history: BookingHistoryRecorder,
        *,
        write_lock: Optional[WriteLock] = None,
        notification_service: Optional[NotificationService] = None,
        payment_gateway: Optional[PaymentGateway] = None,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._booking_repository = booking_repository
        self._block_repository = block_repository
        self._history = history
        self._write_lock = write_lock or threading.RLock()
        self._notification_service = notification_service
        self._payment_gateway = payment_gateway
        self.timezone = timezone
        self._clock = clock or (lambda: pendulum.now(timezone))

    # Commands

    def create_booking(
        self,
        *,
        service_id: Optional[int],
        service_name: str,
        customer_name: str,
        customer_email: str,
        customer_contact: str,
        booking_date: Date,
        booking_time: time,
        duration_minutes: int,
        customer_comments: Optional[str] = None,
        amount: Optional[Decimal] = None,
        actor: HistoryActor = HistoryActor.CUSTOMER,
    ) -> Booking:
        """
        Create a PENDING booking for the requested date and time.

        Raises:
            ValidationError: If the time is off the 30-minute grid, the
                duration is not a positive multiple of 30 or customer
                fields are missing
            ConflictError: If the slot is blocked or already booked
        """
        logger.info(
            "Creating booking for service %s on %s at %s", service_id, booking_date, booking_time
        )

        start_at = self.localize(booking_date, booking_time)
        ensure_aligned(start_at, "booking_time")
        ensure_valid_duration(duration_minutes)
        customer = CustomerInfo(
            name=customer_name,
            email=customer_email,
            contact=customer_contact,
            comments=customer_comments,
        )

        with self._write_lock:
            booking = Booking.create(
                service_id=service_id,
                service_name=service_name,
                customer=customer,
                start_at=start_at,
                duration_minutes=duration_minutes,
                amount=amount,
                now=self._clock(),
            )
            self._ensure_free(booking.time_range)
            saved = self._save(booking)

        self._history.record_created(saved.id, saved.booking_number, actor)
        logger.info("Booking created successfully: %s", saved.booking_number)

        return self._request_payment_preference(saved)

    def reschedule_booking(
        self,
        booking_id: int,
        new_start_at: DateTime,
        actor: HistoryActor = HistoryActor.ADMIN,
    ) -> Booking:
        """
        Move a booking to a new start time, keeping its duration.

        Raises:
            NotFoundError: If the booking does not exist
            DomainRuleViolation: If the booking is cancelled or completed
            ValidationError: If the new start is off the 30-minute grid
            ConflictError: If the new range collides; nothing is changed
        """
        logger.info("Rescheduling booking %s to %s", booking_id, new_start_at)

        with self._write_lock:
            booking = self.get_booking(booking_id)
            booking.ensure_mutable("reschedule")
            ensure_aligned(new_start_at, "new_start_at")

            candidate = TimeRange(
                start=new_start_at, end=new_start_at.add(minutes=booking.duration_minutes)
            )
            self._ensure_free(candidate, exclude_booking_id=booking.id)

            old_start_at = booking.reschedule(new_start_at, now=self._clock())
            saved = self._save(booking)

        self._history.record_rescheduled(saved.id, old_start_at, saved.start_at, actor)
        logger.info("Booking %s rescheduled to %s", saved.booking_number, saved.start_at)
        return saved

    def cancel_booking(self, booking_id: int, actor: HistoryActor = HistoryActor.ADMIN) -> Booking:
        """
        Cancel a booking.

        Raises:
            NotFoundError: If the booking does not exist
            DomainRuleViolation: If it is already cancelled or completed
        """
        logger.info("Cancelling booking: %s", booking_id)

        with self._write_lock:
            booking = self.get_booking(booking_id)
            old_status = booking.cancel(now=self._clock())
            saved = self._save(booking)

        self._history.record_status_changed(saved.id, old_status, saved.status, actor)
        logger.info("Booking cancelled: %s", saved.booking_number)
        return saved

    def complete_booking(self, booking_id: int, actor: HistoryActor = HistoryActor.ADMIN) -> Booking:
        """Mark a confirmed booking as completed (the service was provided)."""
        logger.info("Completing booking: %s", booking_id)

        with self._write_lock:
            booking = self.get_booking(booking_id)
            old_status = booking.complete(now=self._clock())
            saved = self._save(booking)

        self._history.record_status_changed(saved.id, old_status, saved.status, actor)
        logger.info("Booking completed: %s", saved.booking_number)
        return saved

    def confirm_payment(
        self,
        payment_id: str,
        external_reference: Optional[str] = None,
        actor: HistoryActor = HistoryActor.SYSTEM,
    ) -> Booking:
        """
        Apply an approved payment to its booking.

        The booking is found by the stored payment id first, then by the
        external reference (booking number, ``BOOKING-<number>`` or payment
        preference id). Repeating a confirmation with the same payment id is
        a no-op.

        Raises:
            NotFoundError: If no booking matches
            DomainRuleViolation: If the booking is cancelled or was paid with
                a different payment id
        """
        logger.info("Confirming payment for payment ID: %s", payment_id)

        with self._write_lock:
            booking = self._find_for_payment(payment_id, external_reference)
            old_status = booking.status
            old_payment_status = booking.payment_status

            if not booking.confirm_payment(payment_id, now=self._clock()):
                logger.warning(
                    "Booking %s already has payment %s processed. Ignoring duplicate notification.",
                    booking.booking_number, payment_id,
                )
                return booking

            saved = self._save(booking)

        self._history.record_payment_updated(
            saved.id, old_payment_status, saved.payment_status, payment_id, actor
        )
        self._history.record_status_changed(saved.id, old_status, saved.status, actor)
        logger.info("Payment confirmed for booking: %s", saved.booking_number)

        self._notify_confirmation(saved)
        return saved

    def mark_payment_failed(
        self, booking_id: int, actor: HistoryActor = HistoryActor.SYSTEM
    ) -> Booking:
        """Record a rejected payment; the booking keeps its slot."""
        with self._write_lock:
            booking = self.get_booking(booking_id)
            old_payment_status = booking.mark_payment_failed(now=self._clock())
            saved = self._save(booking)

        self._history.record_payment_updated(
            saved.id, old_payment_status, saved.payment_status, saved.payment_id, actor
        )
        logger.info("Payment failed for booking: %s", saved.booking_number)
        return saved

    def update_customer(
        self,
        booking_id: int,
        *,
        name: str,
        email: str,
        contact: str,
        comments: Optional[str] = None,
        actor: HistoryActor = HistoryActor.ADMIN,
    ) -> Booking:
        """
        Replace the customer snapshot of a non-terminal booking.

        Only changed fields are recorded in history; an identical snapshot
        leaves the booking and its history untouched.
        """
        logger.info("Updating customer info for booking %s", booking_id)

        with self._write_lock:
            booking = self.get_booking(booking_id)
            customer = CustomerInfo(name=name, email=email, contact=contact, comments=comments)
            changes = booking.update_customer(customer, now=self._clock())
            if not changes:
                return booking
            saved = self._save(booking)

        self._history.record_customer_updated(saved.id, changes, actor)
        logger.info("Customer info updated for booking %s", saved.booking_number)
        return saved

    # Queries

    def get_booking(self, booking_id: int) -> Booking:
        booking = self._booking_repository.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def get_booking_by_number(self, booking_number: str) -> Booking:
        booking = self._booking_repository.find_by_number(booking_number)
        if booking is None:
            raise NotFoundError("Booking", booking_number)
        return booking

    def list_bookings(self, status: Optional[BookingStatus] = None) -> List[Booking]:
        if status is None:
            logger.debug("Fetching all bookings")
            return self._booking_repository.list_all()
        logger.debug("Fetching bookings with status: %s", status.value)
        return self._booking_repository.list_by_status(status)

    def history_for(self, booking_id: int, newest_first: bool = False) -> List[HistoryEntry]:
        return self._history.history_for(booking_id, newest_first=newest_first)

    def localize(self, booking_date: Date, booking_time: time) -> DateTime:
        """Combine a local date and time into an aware instant."""
        return pendulum.datetime(
            booking_date.year,
            booking_date.month,
            booking_date.day,
            booking_time.hour,
            booking_time.minute,
            booking_time.second,
            booking_time.microsecond,
            tz=self.timezone,
        )

    # Helpers

    def _ensure_free(self, candidate: TimeRange, exclude_booking_id: Optional[int] = None) -> None:
        blocks = colliding_blocks(
            candidate, self._block_repository.find_active_in_range(candidate.start, candidate.end)
        )
        if blocks:
            raise ConflictError(
                f"The selected time ({_range_label(candidate)}) is blocked: {blocks[0].reason}",
                kind="block",
            )

        bookings = colliding_bookings(
            candidate,
            self._booking_repository.find_by_date_range(candidate.start, candidate.end),
            exclude_booking_id=exclude_booking_id,
        )
        if bookings:
            raise ConflictError(
                f"The selected time ({_range_label(candidate)}) collides with another booking",
                kind="booking",
            )

    def _save(self, booking: Booking) -> Booking:
        """Persist, treating a storage overlap rejection like a pre-check conflict."""
        try:
            return self._booking_repository.save(booking)
        except OverlapConstraintError as exc:
            logger.warning("Storage rejected booking %s: %s", booking.booking_number, exc)
            raise ConflictError(
                f"The selected time ({_range_label(booking.time_range)}) is no longer available",
                kind=exc.kind,
            ) from exc

    def _find_for_payment(self, payment_id: str, external_reference: Optional[str]) -> Booking:
        booking = self._booking_repository.find_by_payment_reference(payment_id)

        if booking is None and external_reference:
            number = external_reference
            if number.startswith(EXTERNAL_REFERENCE_PREFIX):
                number = number[len(EXTERNAL_REFERENCE_PREFIX):]
            booking = (
                self._booking_repository.find_by_number(number)
                or self._booking_repository.find_by_payment_reference(external_reference)
            )

        if booking is None:
            raise NotFoundError("Booking with payment reference", external_reference or payment_id)
        return booking

    def _request_payment_preference(self, booking: Booking) -> Booking:
        if self._payment_gateway is None:
            return booking

        try:
            preference_id = self._payment_gateway.create_booking_preference(booking)
        except Exception:
            logger.exception("Failed to create payment preference for %s", booking.booking_number)
            return booking

        # Reload: the booking may have changed while the gateway was called.
        with self._write_lock:
            current = self._booking_repository.find_by_id(booking.id)
            if current is None or current.status != BookingStatus.PENDING:
                logger.warning(
                    "Booking %s is no longer pending, dropping payment preference %s",
                    booking.booking_number, preference_id,
                )
                return current or booking

            current.attach_payment_preference(preference_id, now=self._clock())
            try:
                return self._booking_repository.save(current)
            except SchedulingError:
                logger.exception(
                    "Failed to store payment preference for %s", booking.booking_number
                )
                return self._booking_repository.find_by_id(booking.id) or booking

    def _notify_confirmation(self, booking: Booking) -> None:
        if self._notification_service is None:
            return

        try:
            self._notification_service.send_booking_confirmation(booking)
        except Exception:
            logger.exception(
                "Failed to send booking confirmation email for %s", booking.booking_number
            )
