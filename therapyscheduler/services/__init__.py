"""
Service layer helpers that orchestrate domain logic.
"""

from .scheduling_service import BookingCheck, DayRoute, SchedulingService

__all__ = ["BookingCheck", "DayRoute", "SchedulingService"]
