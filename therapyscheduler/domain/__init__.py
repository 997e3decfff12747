"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .alternatives import AlternativeTimeSuggester
from .candidate_generator import CandidateGenerator
from .conflict_detector import detect_conflicts
from .exceptions import InvalidInputError, RosterFormatError, SchedulingError
from .models import (
    AlternativeTime,
    Client,
    Conflict,
    ConflictType,
    Coordinate,
    ProposedSession,
    ScheduleSlot,
    Session,
    SessionStatus,
    Therapist,
    TimeRange,
    TimeWindow,
)
from .route_optimizer import optimize_route, tour_distance_km

__all__ = [
    "AlternativeTime",
    "AlternativeTimeSuggester",
    "CandidateGenerator",
    "Client",
    "Conflict",
    "ConflictType",
    "Coordinate",
    "InvalidInputError",
    "ProposedSession",
    "RosterFormatError",
    "ScheduleSlot",
    "SchedulingError",
    "Session",
    "SessionStatus",
    "Therapist",
    "TimeRange",
    "TimeWindow",
    "detect_conflicts",
    "optimize_route",
    "tour_distance_km",
]
