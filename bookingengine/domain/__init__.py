"""
Domain layer - Pure business logic without external dependencies.
"""

from .collision import Collisions, colliding_entries, is_occupied
from .exceptions import (
    ConfigError,
    ConflictError,
    DomainRuleViolation,
    NotFoundError,
    OverlapConstraintError,
    SchedulingError,
    ValidationError,
)
from .models import (
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
)
from .slot_calculator import SlotCalculator

__all__ = [
    "Block",
    "BlockStatus",
    "Booking",
    "BookingStatus",
    "BusinessHours",
    "Collisions",
    "ConfigError",
    "ConflictError",
    "CustomerInfo",
    "DomainRuleViolation",
    "HistoryActor",
    "HistoryEntry",
    "HistoryEventType",
    "NotFoundError",
    "OverlapConstraintError",
    "PaymentStatus",
    "SchedulingError",
    "SlotCalculator",
    "TimeRange",
    "ValidationError",
    "colliding_entries",
    "is_occupied",
]
