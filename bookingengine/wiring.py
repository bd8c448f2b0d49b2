"""
Assembles the services on top of the in-memory storage adapter.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from pendulum import DateTime

from .adapters.memory_store import (
    MemoryBlockRepository,
    MemoryBookingRepository,
    MemoryHistoryRepository,
    MemoryStorage,
)
from .adapters.notification import LoggingNotificationService
from .adapters.schedule_source import StaticScheduleSource
from .config import AppConfig
from .domain.slot_calculator import SlotCalculator
from .services.availability import AvailabilityService
from .services.blocks import BlockService
from .services.bookings import BookingService
from .services.calendar import CalendarService
from .services.history import BookingHistoryRecorder
from .services.ports import NotificationService, PaymentGateway, ScheduleConfigSource


@dataclass
class SchedulingEngine:
    """All services sharing one storage and one write lock."""
    storage: MemoryStorage
    bookings: BookingService
    blocks: BlockService
    availability: AvailabilityService
    calendar: CalendarService
    history: BookingHistoryRecorder


def build_memory_engine(
    config: Optional[AppConfig] = None,
    *,
    storage: Optional[MemoryStorage] = None,
    schedule_source: Optional[ScheduleConfigSource] = None,
    notification_service: Optional[NotificationService] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    clock: Optional[Callable[[], DateTime]] = None,
) -> SchedulingEngine:
    """
    Wire every service against a single ``MemoryStorage``.

    The schedule defaults to the ``schedule`` section of the config.
    """
    config = config or AppConfig()
    storage = storage or MemoryStorage()

    booking_repository = MemoryBookingRepository(storage)
    block_repository = MemoryBlockRepository(storage)
    history = BookingHistoryRecorder(MemoryHistoryRepository(storage), clock=clock)

    return SchedulingEngine(
        storage=storage,
        bookings=BookingService(
            booking_repository,
            block_repository,
            history,
            write_lock=storage.lock,
            notification_service=notification_service or LoggingNotificationService(),
            payment_gateway=payment_gateway,
            timezone=config.timezone,
            clock=clock,
        ),
        blocks=BlockService(
            block_repository,
            booking_repository,
            write_lock=storage.lock,
            timezone=config.timezone,
            clock=clock,
        ),
        availability=AvailabilityService(
            booking_repository,
            block_repository,
            schedule_source or StaticScheduleSource(config.schedule),
            slot_calculator=SlotCalculator(
                timezone=config.timezone,
                slot_interval_minutes=config.slot_interval_minutes,
            ),
            fallback_hours=config.fallback_business_hours(),
        ),
        calendar=CalendarService(booking_repository, block_repository, timezone=config.timezone),
        history=history,
    )
