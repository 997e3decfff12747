"""
Pure scoring functions for a (therapist, client, time range) triple.

Every function returns a float in [0, 1] and depends only on its
arguments, so results can be memoized for the duration of one call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Optional, Sequence

from pendulum import DateTime

from ..config import ScoringWeights, TravelConfig
from .geo import estimate_travel_minutes
from .models import (
    Client,
    Coordinate,
    Session,
    SlotScore,
    Therapist,
    TimeRange,
    hour_of_day,
    to_local,
)

PREFERRED_START_HOUR = 9
PREFERRED_END_HOUR = 15
NEUTRAL_SCORE = 0.5

SERVICE_WEIGHT = 0.4
SPECIALTY_WEIGHT = 0.3
LANGUAGE_WEIGHT = 0.2
EXPERIENCE_WEIGHT = 0.1
EXPERIENCE_YEARS = 3


@dataclass
class ScoringContext:
    """Read-only snapshot shared by all scorers during one call."""
    sessions: Sequence[Session]
    timezone: str
    travel: TravelConfig = field(default_factory=TravelConfig)
    client_locations: Mapping[str, Coordinate] = field(default_factory=dict)
    max_daily_hours: float = 8

    @classmethod
    def build(
        cls,
        sessions: Iterable[Session],
        clients: Iterable[Client],
        timezone: str,
        travel: TravelConfig,
        max_daily_hours: float,
    ) -> "ScoringContext":
        locations = {client.id: client.location for client in clients if client.location is not None}
        return cls(
            sessions=tuple(sessions),
            timezone=timezone,
            travel=travel,
            client_locations=locations,
            max_daily_hours=max_daily_hours,
        )


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def blocking_sessions(
    sessions: Iterable[Session],
    therapist_id: Optional[str] = None,
    client_id: Optional[str] = None,
) -> List[Session]:
    """Non-cancelled sessions belonging to the therapist or the client."""
    return [
        session
        for session in sessions
        if session.blocks_time
        and (
            (therapist_id is not None and session.therapist_id == therapist_id)
            or (client_id is not None and session.client_id == client_id)
        )
    ]


def hours_between(sessions: Iterable[Session], start: DateTime, end: DateTime, timezone: str) -> float:
    """Booked hours of sessions whose local start falls in [start, end)."""
    total = 0.0
    for session in sessions:
        local_start = to_local(session.start, timezone)
        if start <= local_start < end:
            total += session.time_range.duration_hours()
    return total


def compatibility_score(therapist: Therapist, client: Client) -> float:
    """
    Pairwise fit independent of time.

    Zero when the pair shares no service type; otherwise service overlap
    (over the union), specialty/diagnosis match, language and experience.
    """
    common = therapist.service_types & client.service_preferences
    if not common:
        return 0.0

    union = therapist.service_types | client.service_preferences
    score = SERVICE_WEIGHT * len(common) / len(union)

    specialties = [specialty.lower() for specialty in therapist.specialties]
    if any(need.lower() in specialty for need in client.diagnoses for specialty in specialties):
        score += SPECIALTY_WEIGHT

    if (client.preferred_language or "English") in therapist.languages:
        score += LANGUAGE_WEIGHT

    if therapist.years_experience >= EXPERIENCE_YEARS:
        score += EXPERIENCE_WEIGHT

    return clamp(score)


def availability_score(
    time_range: TimeRange,
    therapist: Therapist,
    client: Client,
    sessions: Sequence[Session],
    timezone: str,
) -> float:
    """
    Zero when either party is closed, outside their window, or already booked.

    Otherwise rewards ranges close to the preferred 09:00-15:00 block.
    """
    local_start = to_local(time_range.start, timezone)
    local_end = to_local(time_range.end, timezone)
    weekday = local_start.weekday()

    for party in (therapist, client):
        window = party.window_for(weekday)
        if window is None or not window.contains(time_range, timezone):
            return 0.0

    for session in blocking_sessions(sessions, therapist.id, client.id):
        if session.time_range.overlaps(time_range):
            return 0.0

    distance = (
        abs(hour_of_day(local_start) - PREFERRED_START_HOUR)
        + abs(hour_of_day(local_end) - PREFERRED_END_HOUR)
    )
    return clamp(1 - distance / 10)


def workload_score(
    therapist: Therapist,
    time_range: TimeRange,
    sessions: Sequence[Session],
    timezone: str,
    max_daily_hours: float,
) -> float:
    """Share of the therapist's weekly target still open in the slot's ISO week."""
    local_start = to_local(time_range.start, timezone)
    own_sessions = blocking_sessions(sessions, therapist_id=therapist.id)

    week_start = local_start.start_of("week")
    hours_worked = hours_between(own_sessions, week_start, week_start.add(weeks=1), timezone)
    if hours_worked >= therapist.weekly_hours_max:
        return 0.0

    day_start = local_start.start_of("day")
    if hours_between(own_sessions, day_start, day_start.add(days=1), timezone) >= max_daily_hours:
        return 0.0

    target_hours = (therapist.weekly_hours_min + therapist.weekly_hours_max) / 2
    hours_remaining = target_hours - hours_worked
    if target_hours <= 0 or hours_remaining <= 0:
        return 0.0

    return clamp(hours_remaining / target_hours)


def previous_session_same_day(
    therapist: Therapist,
    time_range: TimeRange,
    sessions: Sequence[Session],
    timezone: str,
) -> Optional[Session]:
    """The therapist's latest blocking session that starts earlier on the same local day."""
    local_start = to_local(time_range.start, timezone)
    earlier = [
        session
        for session in blocking_sessions(sessions, therapist_id=therapist.id)
        if to_local(session.start, timezone).date() == local_start.date()
        and session.start < time_range.start
    ]
    if not earlier:
        return None
    return max(earlier, key=lambda session: session.start)


def travel_score(
    therapist: Therapist,
    client: Client,
    time_range: TimeRange,
    context: ScoringContext,
) -> float:
    """
    Penalize long drives from the therapist's previous appointment that day.

    Neutral when either location is unknown; full marks for the first
    session of the day.
    """
    if therapist.location is None or client.location is None:
        return NEUTRAL_SCORE

    previous = previous_session_same_day(therapist, time_range, context.sessions, context.timezone)
    if previous is None:
        return 1.0

    origin = context.client_locations.get(previous.client_id) or therapist.location
    minutes = estimate_travel_minutes(
        origin,
        client.location,
        to_local(time_range.start, context.timezone),
        context.travel,
    )
    return clamp(1 - minutes / context.travel.max_travel_minutes)


def combine_scores(
    weights: ScoringWeights,
    *,
    compatibility: float,
    availability: float,
    workload: float,
    travel: float,
    continuity: float,
    urgency: float,
    efficiency: float,
) -> SlotScore:
    """Weighted sum of all factors, clamped to [0, 1]."""
    total = (
        compatibility * weights.compatibility
        + availability * weights.availability
        + workload * weights.workload
        + travel * weights.travel
        + continuity * weights.continuity
        + urgency * weights.urgency
        + efficiency * weights.efficiency
    )
    return SlotScore(
        compatibility=compatibility,
        availability=availability,
        workload=workload,
        travel=travel,
        continuity=continuity,
        urgency=urgency,
        efficiency=efficiency,
        total=clamp(total),
    )
