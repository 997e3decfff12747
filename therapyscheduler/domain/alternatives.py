"""
Proposes replacement times for a proposal that cannot be booked.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

from ..config import SchedulerConfig
from .candidate_generator import AssignmentLedger
from .conflict_detector import detect_conflicts
from .models import (
    AlternativeTime,
    Client,
    Conflict,
    ConflictType,
    ProposedSession,
    Session,
    Therapist,
    TimeRange,
    to_local,
)
from .scoring import ScoringContext
from .slot_scorer import SlotScorer

logger = logging.getLogger(__name__)

_RESOLVED = {
    ConflictType.THERAPIST_UNAVAILABLE: "therapist is available",
    ConflictType.CLIENT_UNAVAILABLE: "client is available",
    ConflictType.SESSION_OVERLAP: "no overlapping sessions",
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def describe_shift(original: TimeRange, candidate: TimeRange, timezone: str) -> str:
    """Human-readable move, e.g. 'Same day, 1 hour 30 minutes later'."""
    original_start = to_local(original.start, timezone)
    candidate_start = to_local(candidate.start, timezone)
    day_offset = (candidate_start.date() - original_start.date()).days
    if day_offset == 0:
        day_part = "Same day"
    else:
        direction = "later" if day_offset > 0 else "earlier"
        day_part = f"{_plural(abs(day_offset), 'day')} {direction} ({candidate_start.format('dddd')})"

    minutes = (
        candidate_start.hour * 60 + candidate_start.minute
        - original_start.hour * 60 - original_start.minute
    )
    if minutes == 0:
        return f"{day_part}, same time"

    hours, rest = divmod(abs(minutes), 60)
    parts = []
    if hours:
        parts.append(_plural(hours, "hour"))
    if rest:
        parts.append(_plural(rest, "minute"))
    return f"{day_part}, {' '.join(parts)} {'later' if minutes > 0 else 'earlier'}"


class AlternativeTimeSuggester:
    """
    Searches a bounded neighbourhood around a proposal for conflict-free times.

    Candidates keep the proposal's duration, must pass the conflict
    detector, must keep the therapist within the weekly cap, and are ranked
    by the combined slot score, then by closeness to the original start.
    """

    def __init__(self, config: SchedulerConfig):
        self.config = config

    def suggest(
        self,
        proposal: ProposedSession,
        conflicts: Sequence[Conflict],
        therapist: Therapist,
        client: Client,
        sessions: Sequence[Session],
        clients: Sequence[Client] = (),
        exclude_session_id: Optional[str] = None,
    ) -> List[AlternativeTime]:
        """
        Return up to ``alternatives.max_results`` ranked alternatives.

        Returns an empty list when nothing in the neighbourhood qualifies.
        """
        timezone = self.config.timezone
        settings = self.config.alternatives
        remaining_sessions = [session for session in sessions if session.id != exclude_session_id]
        context = ScoringContext.build(
            remaining_sessions,
            [client, *clients],
            timezone,
            self.config.travel,
            self.config.generation.max_daily_hours,
        )
        scorer = SlotScorer(self.config, context)
        ledger = AssignmentLedger(remaining_sessions, timezone, 0)
        max_daily_hours = self.config.generation.max_daily_hours

        original = proposal.time_range
        resolved = "; ".join(
            _RESOLVED[conflict_type]
            for conflict_type in ConflictType
            if any(conflict.type is conflict_type for conflict in conflicts)
        )

        ranked: List[Tuple[float, float, AlternativeTime]] = []
        for candidate in self._neighbourhood(original):
            if self._conflicts(candidate, therapist, client, remaining_sessions):
                continue
            if not ledger.has_capacity(therapist, client, candidate, max_daily_hours):
                continue

            score = scorer.score(therapist, client, candidate).total
            if score <= 0:
                continue

            reason = describe_shift(original, candidate, timezone)
            if resolved:
                reason = f"{reason}: {resolved}"
            distance = abs((candidate.start - original.start).total_seconds())
            ranked.append(
                (score, distance, AlternativeTime(start=candidate.start, end=candidate.end, score=score, reason=reason))
            )

        ranked.sort(key=lambda item: (-item[0], item[1], item[2].start))
        alternatives = [alternative for _, _, alternative in ranked[: settings.max_results]]
        logger.debug(
            "Found %d alternative(s) for %s/%s around %s",
            len(alternatives),
            therapist.id,
            client.id,
            original.start,
        )
        return alternatives

    def _neighbourhood(self, original: TimeRange) -> List[TimeRange]:
        """All shifted copies of the original within the search window, excluding itself."""
        settings = self.config.alternatives
        duration = original.duration_minutes()
        local_start = to_local(original.start, self.config.timezone)
        max_offset = settings.search_hours * 60
        candidates: List[TimeRange] = []

        for day_offset in range(-settings.search_days, settings.search_days + 1):
            day_start = local_start.add(days=day_offset)
            minute_offset = -max_offset
            while minute_offset <= max_offset:
                if day_offset or minute_offset:
                    start = day_start.add(minutes=minute_offset)
                    candidates.append(TimeRange(start=start, end=start.add(minutes=duration)))
                minute_offset += settings.step_minutes

        return candidates

    def _conflicts(
        self,
        candidate: TimeRange,
        therapist: Therapist,
        client: Client,
        sessions: Sequence[Session],
    ) -> bool:
        proposal = ProposedSession(
            therapist_id=therapist.id,
            client_id=client.id,
            start=candidate.start,
            end=candidate.end,
        )
        return bool(detect_conflicts(proposal, therapist, client, sessions, self.config.timezone))
