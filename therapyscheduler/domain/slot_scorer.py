"""
Memoizing facade over the scoring functions for one scheduling call.
"""

from typing import Optional

from ..config import SchedulerConfig
from .cache import ScoreCache, memoized
from .models import Client, SlotScore, Therapist, TimeRange
from .scoring import (
    ScoringContext,
    availability_score,
    combine_scores,
    compatibility_score,
    travel_score,
    workload_score,
)
from .strategies import SupplementalScorers


class SlotScorer:
    """
    Scores (therapist, client, time range) triples against a fixed snapshot.

    Cache keys combine entity ids with the range's instants, so one cache
    must only ever be used with one context.
    """

    def __init__(
        self,
        config: SchedulerConfig,
        context: ScoringContext,
        cache: Optional[ScoreCache] = None,
        scorers: Optional[SupplementalScorers] = None,
    ) -> None:
        self.config = config
        self.context = context
        self.cache = cache
        self.scorers = scorers or SupplementalScorers.from_config(config.strategies)

    def compatibility(self, therapist: Therapist, client: Client) -> float:
        return memoized(
            self.cache,
            ("compatibility", therapist.id, client.id),
            lambda: compatibility_score(therapist, client),
        )

    def availability(self, therapist: Therapist, client: Client, time_range: TimeRange) -> float:
        return memoized(
            self.cache,
            ("availability", therapist.id, client.id, time_range.start, time_range.end),
            lambda: availability_score(
                time_range, therapist, client, self.context.sessions, self.context.timezone
            ),
        )

    def workload(self, therapist: Therapist, time_range: TimeRange) -> float:
        return memoized(
            self.cache,
            ("workload", therapist.id, time_range.start, time_range.end),
            lambda: workload_score(
                therapist,
                time_range,
                self.context.sessions,
                self.context.timezone,
                self.context.max_daily_hours,
            ),
        )

    def travel(self, therapist: Therapist, client: Client, time_range: TimeRange) -> float:
        return memoized(
            self.cache,
            ("travel", therapist.id, client.id, time_range.start),
            lambda: travel_score(therapist, client, time_range, self.context),
        )

    def score(
        self,
        therapist: Therapist,
        client: Client,
        time_range: TimeRange,
        availability: Optional[float] = None,
    ) -> SlotScore:
        """Full breakdown; pass a precomputed availability to skip recomputing it."""
        if availability is None:
            availability = self.availability(therapist, client, time_range)
        return combine_scores(
            self.config.weights,
            compatibility=self.compatibility(therapist, client),
            availability=availability,
            workload=self.workload(therapist, time_range),
            travel=self.travel(therapist, client, time_range),
            continuity=self.scorers.continuity(therapist, client, time_range, self.context),
            urgency=self.scorers.urgency(therapist, client, time_range, self.context),
            efficiency=self.scorers.efficiency(therapist, client, time_range, self.context),
        )
