"""
Domain-specific exception hierarchy for the therapy scheduler.

Empty results ("no compatible pair", "no alternative found") are never
raised; they are returned as empty lists.
"""


class SchedulingError(Exception):
    """Base class for all application-level errors."""


class InvalidInputError(SchedulingError, ValueError):
    """Raised when entity data is malformed (inverted windows, unknown weekdays, naive instants)."""


class RosterFormatError(InvalidInputError):
    """Raised when a roster document cannot be parsed into entities."""
