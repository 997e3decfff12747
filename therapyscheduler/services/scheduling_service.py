"""
Application services for proposing, checking and routing therapy sessions.

The service wires configuration into the domain components and is the
single entry point used by the CLI and by embedding applications. It holds
no state between calls: each call builds its own score cache, counters and
random source.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, List, Optional, Sequence

from ..config import SchedulerConfig
from ..domain.alternatives import AlternativeTimeSuggester
from ..domain.cache import BoundedScoreCache, ScoreCache
from ..domain.candidate_generator import CandidateGenerator, as_local_date
from ..domain.conflict_detector import detect_conflicts
from ..domain.models import (
    AlternativeTime,
    Client,
    Conflict,
    Coordinate,
    ProposedSession,
    ScheduleSlot,
    Session,
    Therapist,
    to_local,
)
from ..domain.route_optimizer import optimize_route, tour_distance_km
from ..domain.validation import ScheduleValidation, reschedule_session, validate_schedule

logger = logging.getLogger(__name__)

CacheFactory = Callable[[], ScoreCache]


@dataclass
class BookingCheck:
    """Outcome of checking a proposal: conflicts and, if any, alternatives."""
    conflicts: List[Conflict] = field(default_factory=list)
    alternatives: List[AlternativeTime] = field(default_factory=list)

    @property
    def is_clear(self) -> bool:
        return not self.conflicts


@dataclass
class DayRoute:
    """Visiting order for one therapist's day."""
    start: Optional[Coordinate]
    stops: List[Coordinate] = field(default_factory=list)
    distance_km: float = 0.0
    unlocated_sessions: List[str] = field(default_factory=list)


class SchedulingService:
    """
    Orchestrates scoring, generation, conflict checks and routing.

    A fresh score cache is created for every generation call unless a
    ``cache_factory`` is supplied, so concurrent calls never share state.
    """

    def __init__(
        self,
        config: Optional[SchedulerConfig] = None,
        cache_factory: Optional[CacheFactory] = None,
    ) -> None:
        self.config = config or SchedulerConfig()
        self._cache_factory = cache_factory or (lambda: BoundedScoreCache.from_config(self.config.cache))

    def generate_schedule(
        self,
        therapists: Sequence[Therapist],
        clients: Sequence[Client],
        sessions: Sequence[Session],
        start_date: date | datetime,
        end_date: date | datetime,
        session_duration_minutes: Optional[int] = None,
    ) -> List[ScheduleSlot]:
        """Ranked, size-bounded slot proposals for the horizon."""
        generator = CandidateGenerator(self.config, cache=self._cache_factory())
        slots = generator.generate(
            therapists=therapists,
            clients=clients,
            sessions=sessions,
            start_date=start_date,
            end_date=end_date,
            session_duration_minutes=session_duration_minutes,
        )
        logger.info(
            "Generated %d slot(s) for %d therapist(s) and %d client(s)",
            len(slots),
            len(therapists),
            len(clients),
        )
        return slots

    def detect_conflicts(
        self,
        proposal: ProposedSession,
        therapist: Therapist,
        client: Client,
        sessions: Sequence[Session],
        exclude_session_id: Optional[str] = None,
    ) -> List[Conflict]:
        """Typed conflicts for the proposal; empty when it is clear to book."""
        return detect_conflicts(
            proposal,
            therapist,
            client,
            sessions,
            self.config.timezone,
            exclude_session_id=exclude_session_id,
        )

    def suggest_alternatives(
        self,
        proposal: ProposedSession,
        conflicts: Sequence[Conflict],
        therapist: Therapist,
        client: Client,
        sessions: Sequence[Session],
        exclude_session_id: Optional[str] = None,
        clients: Sequence[Client] = (),
    ) -> List[AlternativeTime]:
        """Nearby conflict-free times, best first."""
        return AlternativeTimeSuggester(self.config).suggest(
            proposal,
            conflicts,
            therapist,
            client,
            sessions,
            clients=clients,
            exclude_session_id=exclude_session_id,
        )

    def check_booking(
        self,
        proposal: ProposedSession,
        therapist: Therapist,
        client: Client,
        sessions: Sequence[Session],
        exclude_session_id: Optional[str] = None,
        clients: Sequence[Client] = (),
    ) -> BookingCheck:
        """Detect conflicts and, only when there are some, suggest alternatives."""
        conflicts = self.detect_conflicts(proposal, therapist, client, sessions, exclude_session_id)
        if not conflicts:
            return BookingCheck()

        logger.info(
            "Proposal %s/%s at %s has %d conflict(s)",
            proposal.therapist_id,
            proposal.client_id,
            proposal.start,
            len(conflicts),
        )
        alternatives = self.suggest_alternatives(
            proposal, conflicts, therapist, client, sessions, exclude_session_id, clients
        )
        return BookingCheck(conflicts=conflicts, alternatives=alternatives)

    def optimize_route(
        self,
        locations: Sequence[Coordinate],
        start_location: Coordinate,
        rng: Optional[random.Random] = None,
    ) -> List[Coordinate]:
        """Low-distance visiting order for the locations, departing from and returning to start."""
        return optimize_route(locations, start_location, rng=rng, route_config=self.config.route)

    def plan_day_route(
        self,
        therapist: Therapist,
        day: date | datetime,
        sessions: Sequence[Session],
        clients: Sequence[Client],
        rng: Optional[random.Random] = None,
    ) -> DayRoute:
        """
        Route through the client locations of the therapist's sessions on one day.

        Departs from the therapist's home location, or from the first
        session's location when no home location is known.
        """
        timezone = self.config.timezone
        local_day = as_local_date(day, timezone)
        locations = {client.id: client.location for client in clients}

        day_sessions = sorted(
            (
                session
                for session in sessions
                if session.therapist_id == therapist.id
                and session.blocks_time
                and to_local(session.start, timezone).date() == local_day
            ),
            key=lambda session: session.start,
        )

        stops: List[Coordinate] = []
        unlocated: List[str] = []
        for session in day_sessions:
            location = locations.get(session.client_id)
            if location is None:
                unlocated.append(session.id)
            else:
                stops.append(location)

        if unlocated:
            logger.warning("%d session(s) on %s have no client location", len(unlocated), local_day)

        start = therapist.location
        if start is None:
            if not stops:
                return DayRoute(start=None, unlocated_sessions=unlocated)
            start, stops = stops[0], stops[1:]

        order = self.optimize_route(stops, start, rng=rng)
        return DayRoute(
            start=start,
            stops=order,
            distance_km=tour_distance_km(start, order),
            unlocated_sessions=unlocated,
        )

    def validate_schedule(
        self,
        slots: Sequence[ScheduleSlot],
        therapists: Sequence[Therapist],
        clients: Sequence[Client],
    ) -> ScheduleValidation:
        return validate_schedule(slots, therapists, clients, self.config)

    def reschedule_session(
        self,
        session: Session,
        candidates: Sequence[ScheduleSlot],
        sessions: Sequence[Session],
    ) -> Optional[ScheduleSlot]:
        return reschedule_session(session, candidates, sessions)
