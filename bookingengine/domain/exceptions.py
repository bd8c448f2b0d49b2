"""
Domain-specific exception hierarchy for the booking engine.
"""


class SchedulingError(Exception):
    """Base class for all scheduling errors."""


class ValidationError(SchedulingError, ValueError):
    """Raised for malformed, caller-correctable input."""


class ConflictError(SchedulingError):
    """
    Raised when a requested interval collides with an occupying entry.

    ``kind`` names what blocked the action: ``"booking"`` or ``"block"``.
    """

    def __init__(self, message: str, kind: str = "booking"):
        super().__init__(message)
        self.kind = kind


class OverlapConstraintError(ConflictError):
    """Raised by a store when a save would break the no-overlap constraint."""


class NotFoundError(SchedulingError):
    """Raised when a referenced booking or block does not exist."""

    def __init__(self, resource: str, identifier: object):
        super().__init__(f"{resource} '{identifier}' not found")
        self.resource = resource
        self.identifier = identifier


class DomainRuleViolation(SchedulingError):
    """Raised when an operation is not allowed in the entity's current state."""


class ConfigError(SchedulingError):
    """Raised when the application config file cannot be used."""
