"""
Command handlers for schedule blocks (holidays, maintenance, personal days).
"""

import logging
import threading
from typing import Callable, Optional

import pendulum
from pendulum import DateTime

from ..domain.collision import colliding_bookings
from ..domain.exceptions import ConflictError, NotFoundError, OverlapConstraintError
from ..domain.models import DEFAULT_TIMEZONE, Block
from .ports import BlockRepository, BookingRepository, WriteLock

logger = logging.getLogger(__name__)


class BlockService:
    """Creates and cancels blocks on the shared timeline."""

    def __init__(
        self,
        block_repository: BlockRepository,
        booking_repository: BookingRepository,
        *,
        write_lock: Optional[WriteLock] = None,
        timezone: str = DEFAULT_TIMEZONE,
        clock: Optional[Callable[[], DateTime]] = None,
    ) -> None:
        self._block_repository = block_repository
        self._booking_repository = booking_repository
        self._write_lock = write_lock or threading.RLock()
        self._clock = clock or (lambda: pendulum.now(timezone))

    def create_block(self, start_at: DateTime, end_at: DateTime, reason: str) -> Block:
        """
        Create a new ACTIVE block.

        Args:
            start_at: Start time (must be aligned to 30-minute intervals)
            end_at: End time (aligned, after start_at)
            reason: Why the time is closed (required)

        Raises:
            ValidationError: If alignment, ordering or reason rules are violated
            ConflictError: If the range collides with an active block or an
                occupying booking
        """
        logger.info("Creating block from %s to %s with reason: %s", start_at, end_at, reason)

        block = Block.create(reason=reason, start_at=start_at, end_at=end_at, now=self._clock())

        with self._write_lock:
            if self._block_repository.exists_active_in_range(start_at, end_at):
                raise ConflictError(
                    "An active block already exists in that time range", kind="block"
                )

            bookings = colliding_bookings(
                block.time_range,
                self._booking_repository.find_by_date_range(start_at, end_at),
            )
            if bookings:
                raise ConflictError(
                    f"An active booking ({bookings[0].booking_number}) exists in that time range",
                    kind="booking",
                )

            try:
                saved = self._block_repository.save(block)
            except OverlapConstraintError as exc:
                logger.warning("Storage rejected block %s: %s", block.block_number, exc)
                raise ConflictError(
                    "That time range is no longer free", kind=exc.kind
                ) from exc

        logger.info("Block created successfully: %s", saved.block_number)
        return saved

    def cancel_block(self, block_id: int) -> Block:
        """
        Cancel a block, releasing its time range.

        Raises:
            NotFoundError: If the block does not exist
            DomainRuleViolation: If it is already cancelled
        """
        logger.info("Cancelling block: %s", block_id)

        with self._write_lock:
            block = self.get_block(block_id)
            block.cancel(now=self._clock())
            saved = self._block_repository.save(block)

        logger.info("Block cancelled: %s", saved.block_number)
        return saved

    def get_block(self, block_id: int) -> Block:
        block = self._block_repository.find_by_id(block_id)
        if block is None:
            raise NotFoundError("Block", block_id)
        return block

    def get_block_by_number(self, block_number: str) -> Block:
        block = self._block_repository.find_by_number(block_number)
        if block is None:
            raise NotFoundError("Block", block_number)
        return block
