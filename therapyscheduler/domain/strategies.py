"""
Pluggable scorers for the continuity, urgency and efficiency factors.

The constant scorer reproduces the neutral behaviour; the others derive
the factor from session history, monthly authorization or same-day
proximity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..config import StrategyConfig
from .geo import haversine_km
from .models import Client, SessionStatus, Therapist, TimeRange, to_local
from .scoring import NEUTRAL_SCORE, ScoringContext, blocking_sessions, clamp, hours_between

SupplementalScorer = Callable[[Therapist, Client, TimeRange, ScoringContext], float]


def constant_scorer(value: float = NEUTRAL_SCORE) -> SupplementalScorer:
    """Scorer that ignores its inputs."""
    value = clamp(value)

    def score(therapist: Therapist, client: Client, time_range: TimeRange, context: ScoringContext) -> float:
        return value

    return score


def history_continuity(
    therapist: Therapist,
    client: Client,
    time_range: TimeRange,
    context: ScoringContext,
) -> float:
    """Reward pairs whose earlier sessions were completed and documented."""
    previous = [
        session
        for session in context.sessions
        if session.therapist_id == therapist.id and session.client_id == client.id
    ]
    if not previous:
        return NEUTRAL_SCORE

    completed = sum(1 for session in previous if session.status is SessionStatus.COMPLETED)
    documented = sum(1 for session in previous if session.notes)
    return clamp(0.7 * completed / len(previous) + 0.3 * documented / len(previous))


def authorization_urgency(
    therapist: Therapist,
    client: Client,
    time_range: TimeRange,
    context: ScoringContext,
) -> float:
    """Favour clients with many authorized hours left and few days left in the month."""
    local_start = to_local(time_range.start, context.timezone)
    month_start = local_start.start_of("month")
    used = hours_between(
        blocking_sessions(context.sessions, client_id=client.id),
        month_start,
        month_start.add(months=1),
        context.timezone,
    )
    remaining = client.authorized_hours - used
    if remaining <= 0:
        return 0.0

    days_remaining = max(1, local_start.days_in_month - local_start.day)
    return clamp(remaining / days_remaining / 2)


def proximity_efficiency(
    therapist: Therapist,
    client: Client,
    time_range: TimeRange,
    context: ScoringContext,
) -> float:
    """Favour clients close to the therapist's other appointments that day."""
    local_day = to_local(time_range.start, context.timezone).date()
    same_day = [
        session
        for session in blocking_sessions(context.sessions, therapist_id=therapist.id)
        if to_local(session.start, context.timezone).date() == local_day
    ]
    if not same_day:
        return 1.0
    if client.location is None:
        return NEUTRAL_SCORE

    locations = [
        context.client_locations[session.client_id]
        for session in same_day
        if session.client_id in context.client_locations
    ]
    if not locations:
        return NEUTRAL_SCORE

    nearest_km = min(haversine_km(client.location, location) for location in locations)
    return clamp(1 - nearest_km / context.travel.service_area_radius_km)


@dataclass(frozen=True)
class SupplementalScorers:
    continuity: SupplementalScorer
    urgency: SupplementalScorer
    efficiency: SupplementalScorer

    @classmethod
    def from_config(cls, config: StrategyConfig) -> "SupplementalScorers":
        constant = constant_scorer(config.constant_value)
        continuity = {"constant": constant, "history": history_continuity}
        urgency = {"constant": constant, "authorization": authorization_urgency}
        efficiency = {"constant": constant, "proximity": proximity_efficiency}
        return cls(
            continuity=continuity[config.continuity],
            urgency=urgency[config.urgency],
            efficiency=efficiency[config.efficiency],
        )
