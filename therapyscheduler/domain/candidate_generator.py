"""
Core business logic for proposing therapy sessions over a date horizon.

Pure domain logic: no API calls, no database, no I/O.
"""

from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple

import pendulum

from ..config import SchedulerConfig
from .cache import BoundedScoreCache, ScoreCache
from .exceptions import InvalidInputError
from .geo import within_service_radius
from .models import Client, ScheduleSlot, Session, Therapist, TimeRange, to_local
from .slot_scorer import SlotScorer
from .scoring import ScoringContext

logger = logging.getLogger(__name__)


class CompatiblePair(NamedTuple):
    therapist: Therapist
    client: Client
    compatibility: float


def as_local_date(value: date | datetime, timezone: str) -> date:
    """Calendar date of a date or aware datetime in the scheduling timezone."""
    if isinstance(value, datetime):
        return to_local(value, timezone).date()
    return value


class AssignmentLedger:
    """
    Running hour counters and booked ranges for one generation call.

    Seeded from existing sessions so that caps account for hours that are
    already booked.
    """

    def __init__(self, sessions: Sequence[Session], timezone: str, min_break_minutes: int) -> None:
        self.timezone = timezone
        self.min_break_minutes = min_break_minutes
        self._hours: Dict[Tuple[str, str, date], float] = defaultdict(float)
        self._booked: Dict[Tuple[str, str], List[TimeRange]] = defaultdict(list)

        for session in sessions:
            if session.blocks_time:
                self._add(session.therapist_id, session.client_id, session.time_range)

    def _week_key(self, time_range: TimeRange) -> date:
        return to_local(time_range.start, self.timezone).start_of("week").date()

    def _day_key(self, time_range: TimeRange) -> date:
        return to_local(time_range.start, self.timezone).date()

    def _add(self, therapist_id: str, client_id: str, time_range: TimeRange) -> None:
        hours = time_range.duration_hours()
        week = self._week_key(time_range)
        self._hours[("therapist-week", therapist_id, week)] += hours
        self._hours[("client-week", client_id, week)] += hours
        self._hours[("therapist-day", therapist_id, self._day_key(time_range))] += hours
        self._booked[("therapist", therapist_id)].append(time_range)
        self._booked[("client", client_id)].append(time_range)

    def weekly_hours(self, role: str, entity_id: str, time_range: TimeRange) -> float:
        return self._hours[(f"{role}-week", entity_id, self._week_key(time_range))]

    def daily_hours(self, therapist_id: str, time_range: TimeRange) -> float:
        return self._hours[("therapist-day", therapist_id, self._day_key(time_range))]

    def _too_close(self, role: str, entity_id: str, time_range: TimeRange) -> bool:
        return any(
            booked.overlaps(time_range) or booked.gap_minutes(time_range) < self.min_break_minutes
            for booked in self._booked[(role, entity_id)]
        )

    def has_capacity(
        self,
        therapist: Therapist,
        client: Client,
        time_range: TimeRange,
        max_daily_hours: float,
    ) -> bool:
        """Whether booking the range keeps both parties within caps and break rules."""
        hours = time_range.duration_hours()
        if self.weekly_hours("therapist", therapist.id, time_range) + hours > therapist.weekly_hours_max:
            return False
        if self.weekly_hours("client", client.id, time_range) + hours > client.authorized_hours:
            return False
        if self.daily_hours(therapist.id, time_range) + hours > max_daily_hours:
            return False
        if self._too_close("therapist", therapist.id, time_range):
            return False
        if self._too_close("client", client.id, time_range):
            return False
        return True

    def record(self, therapist: Therapist, client: Client, time_range: TimeRange) -> None:
        self._add(therapist.id, client.id, time_range)


class CandidateGenerator:
    """
    Turns pair scores into a bounded, constraint-respecting list of slots.

    Algorithm:
    1. Keep only pairs with compatibility > 0, best first
    2. Walk the horizon week by week, day by day, start time by start time
    3. For each start time give the slot to the first pair that has
       capacity, is available, and clears the minimum score
    4. Rank all emitted slots by score and keep the best ones
    """

    def __init__(self, config: SchedulerConfig, cache: Optional[ScoreCache] = None):
        self.config = config
        self._cache = cache

    def generate(
        self,
        therapists: Sequence[Therapist],
        clients: Sequence[Client],
        sessions: Sequence[Session],
        start_date: date | datetime,
        end_date: date | datetime,
        session_duration_minutes: Optional[int] = None,
    ) -> List[ScheduleSlot]:
        """
        Propose sessions between start_date and end_date (inclusive).

        Args:
            therapists: Therapist records
            clients: Client records
            sessions: Existing sessions for the horizon
            start_date: First day of the horizon
            end_date: Last day of the horizon
            session_duration_minutes: Length of each proposed session

        Returns:
            Slots sorted by descending score; empty when nothing fits

        Raises:
            InvalidInputError: If the horizon or duration is malformed
        """
        settings = self.config.generation
        timezone = self.config.timezone
        duration = settings.session_duration_minutes if session_duration_minutes is None else session_duration_minutes
        if duration <= 0:
            raise InvalidInputError(f"Session duration must be positive, got {duration}")

        first_day = as_local_date(start_date, timezone)
        last_day = as_local_date(end_date, timezone)
        if last_day < first_day:
            raise InvalidInputError(f"Horizon end {last_day} is before start {first_day}")

        context = ScoringContext.build(
            sessions, clients, timezone, self.config.travel, settings.max_daily_hours
        )
        cache = self._cache if self._cache is not None else BoundedScoreCache.from_config(self.config.cache)
        scorer = SlotScorer(self.config, context, cache)

        pairs = self._compatible_pairs(therapists, clients, scorer)
        if not pairs:
            logger.info("No compatible therapist/client pairs among %d x %d", len(therapists), len(clients))
            return []

        ledger = AssignmentLedger(context.sessions, timezone, settings.min_break_minutes)
        slots: List[ScheduleSlot] = []

        for week_start, days in self._iter_weeks(first_day, last_day):
            week_count = len(slots)
            for day in days:
                if day.weekday() in settings.exclude_days:
                    continue
                for time_range in self._day_ranges(day, duration):
                    slot = self._assign(time_range, pairs, scorer, ledger)
                    if slot is not None:
                        slots.append(slot)
            logger.debug("Week of %s: %d slot(s) proposed", week_start, len(slots) - week_count)

        slots.sort(key=lambda slot: (-slot.score, slot.start))
        logger.info(
            "Proposed %d slot(s) from %d compatible pair(s), returning top %d",
            len(slots),
            len(pairs),
            min(len(slots), settings.max_results),
        )
        return slots[: settings.max_results]

    def _compatible_pairs(
        self,
        therapists: Sequence[Therapist],
        clients: Sequence[Client],
        scorer: SlotScorer,
    ) -> List[CompatiblePair]:
        """All pairs passing the compatibility gate (and service radius), best first."""
        settings = self.config.generation
        radius = self.config.travel.service_area_radius_km
        pairs: List[CompatiblePair] = []

        for therapist in therapists:
            for client in clients:
                compatibility = scorer.compatibility(therapist, client)
                if compatibility <= 0:
                    continue
                if settings.enforce_service_radius and not within_service_radius(therapist, client, radius):
                    logger.debug("Pair %s/%s outside service radius", therapist.id, client.id)
                    continue
                pairs.append(CompatiblePair(therapist, client, compatibility))

        pairs.sort(key=lambda pair: pair.compatibility, reverse=True)
        return pairs

    @staticmethod
    def _iter_weeks(first_day: date, last_day: date) -> Iterator[Tuple[date, List[date]]]:
        """Yield (monday, days) for each ISO week touched by the horizon."""
        span = (last_day - first_day).days + 1
        days = (pendulum.Date(first_day.year, first_day.month, first_day.day).add(days=n) for n in range(span))
        for _, group in itertools.groupby(days, key=lambda day: day.isocalendar()[:2]):
            week_days = list(group)
            yield week_days[0].start_of("week"), week_days

    def _day_ranges(self, day: date, duration_minutes: int) -> Iterator[TimeRange]:
        """Candidate ranges of one day, stepping through the configured hours."""
        settings = self.config.generation
        midnight = pendulum.datetime(day.year, day.month, day.day, tz=self.config.timezone)
        offset = settings.day_start_hour * 60
        while offset < settings.day_end_hour * 60:
            start = midnight.set(hour=offset // 60, minute=offset % 60)
            yield TimeRange(start=start, end=start.add(minutes=duration_minutes))
            offset += settings.step_minutes

    def _assign(
        self,
        time_range: TimeRange,
        pairs: Sequence[CompatiblePair],
        scorer: SlotScorer,
        ledger: AssignmentLedger,
    ) -> Optional[ScheduleSlot]:
        """Give the range to the first pair that can take it, if any."""
        settings = self.config.generation

        for therapist, client, _ in pairs:
            if not ledger.has_capacity(therapist, client, time_range, settings.max_daily_hours):
                continue

            availability = scorer.availability(therapist, client, time_range)
            if availability == 0:
                continue

            breakdown = scorer.score(therapist, client, time_range, availability=availability)
            if breakdown.total <= settings.min_score:
                continue

            ledger.record(therapist, client, time_range)
            return ScheduleSlot(
                therapist_id=therapist.id,
                client_id=client.id,
                start=time_range.start,
                end=time_range.end,
                score=breakdown.total,
                location=client.location,
                breakdown=breakdown,
            )

        return None
