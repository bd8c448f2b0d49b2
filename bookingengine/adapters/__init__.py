"""
Adapters layer - Storage, configuration and notification integrations.
"""

from .memory_store import (
    MemoryBlockRepository,
    MemoryBookingRepository,
    MemoryHistoryRepository,
    MemoryStorage,
    load_fixture,
)
from .notification import LoggingNotificationService
from .schedule_source import StaticScheduleSource, YamlScheduleSource

__all__ = [
    "LoggingNotificationService",
    "MemoryBlockRepository",
    "MemoryBookingRepository",
    "MemoryHistoryRepository",
    "MemoryStorage",
    "StaticScheduleSource",
    "YamlScheduleSource",
    "load_fixture",
]
