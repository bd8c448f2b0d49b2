"""
Notification adapters.
"""

import logging

from ..domain.models import Booking

logger = logging.getLogger(__name__)


class LoggingNotificationService:
    """
    Notification sink that only logs.

    Email delivery is handled outside this engine; this adapter keeps the
    confirmation flow observable until a real sender is wired in.
    """

    def send_booking_confirmation(self, booking: Booking) -> None:
        logger.info(
            "Would send booking confirmation for %s to %s",
            booking.booking_number,
            booking.customer.email,
        )
