"""
Tests for the candidate generator.
"""

from collections import defaultdict

import pendulum
import pytest

from factories import HOME, MONDAY, TZ, at, make_client, make_session, make_therapist, weekdays
from therapyscheduler.config import SchedulerConfig
from therapyscheduler.domain.cache import BoundedScoreCache
from therapyscheduler.domain.candidate_generator import CandidateGenerator
from therapyscheduler.domain.exceptions import InvalidInputError
from therapyscheduler.domain.models import Coordinate
from therapyscheduler.domain.validation import validate_schedule


def _day(value: str):
    return pendulum.parse(value, tz=TZ).date()


def _hours_per_week(slots, key):
    totals = defaultdict(float)
    for slot in slots:
        week = slot.start.in_timezone(TZ).start_of("week").date()
        totals[(key(slot), week)] += slot.time_range.duration_hours()
    return totals


class TestCandidateGenerator:
    """Tests for CandidateGenerator."""

    def test_single_compatible_pair(self, config):
        """Monday 09:00-17:00 for both parties yields well-scored slots."""
        generator = CandidateGenerator(config)

        slots = generator.generate(
            therapists=[make_therapist()],
            clients=[make_client(authorized_hours=10)],
            sessions=[],
            start_date=_day(MONDAY),
            end_date=_day(MONDAY),
        )

        assert slots
        assert all(slot.score > 0.3 for slot in slots)
        assert sorted(slot.start.format("HH:mm") for slot in slots) == ["09:00", "11:00", "13:00", "15:00"]
        assert slots[0].breakdown is not None
        assert slots[0].breakdown.total == slots[0].score

    def test_slots_are_sorted_by_score(self, config):
        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY)
        )

        scores = [slot.score for slot in slots]
        assert scores == sorted(scores, reverse=True)

    def test_no_compatible_pairs(self, config):
        therapist = make_therapist(service_types={"Speech"})

        slots = CandidateGenerator(config).generate(
            [therapist], [make_client()], [], _day(MONDAY), _day(MONDAY)
        )

        assert slots == []

    def test_empty_inputs(self, config):
        assert CandidateGenerator(config).generate([], [], [], _day(MONDAY), _day(MONDAY)) == []

    def test_reversed_horizon_is_rejected(self, config):
        with pytest.raises(InvalidInputError, match="before start"):
            CandidateGenerator(config).generate(
                [make_therapist()], [make_client()], [], _day("2024-11-26"), _day(MONDAY)
            )

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_is_rejected(self, config, duration):
        with pytest.raises(InvalidInputError):
            CandidateGenerator(config).generate(
                [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY), session_duration_minutes=duration
            )

    def test_client_weekly_authorization(self, config):
        """A client authorized for 2 hours gets at most 2 hours per week."""
        therapist = make_therapist(availability=weekdays())
        client = make_client(availability=weekdays(), authorized_hours=2)

        slots = CandidateGenerator(config).generate(
            [therapist], [client], [], _day(MONDAY), _day("2024-12-06")
        )

        per_week = _hours_per_week(slots, key=lambda slot: slot.client_id)
        assert len(per_week) == 2
        assert all(hours == 2 for hours in per_week.values())

    def test_therapist_weekly_cap(self, config):
        therapist = make_therapist(availability=weekdays(), weekly_hours_min=0, weekly_hours_max=3)
        clients = [
            make_client("c1", availability=weekdays(), authorized_hours=10),
            make_client("c2", availability=weekdays(), authorized_hours=10),
        ]

        slots = CandidateGenerator(config).generate(
            [therapist], clients, [], _day(MONDAY), _day("2024-11-29")
        )

        per_week = _hours_per_week(slots, key=lambda slot: slot.therapist_id)
        assert sum(per_week.values()) == 3

    def test_existing_hours_count_toward_caps(self, config):
        therapist = make_therapist(availability=weekdays(), weekly_hours_min=0, weekly_hours_max=3)
        sessions = [make_session("s1", "09:00", "11:00", client_id="c2", day="2024-11-26")]

        slots = CandidateGenerator(config).generate(
            [therapist], [make_client(availability=weekdays())], sessions, _day(MONDAY), _day("2024-11-29")
        )

        assert len(slots) == 1

    def test_daily_hour_cap(self):
        config = SchedulerConfig(timezone=TZ, generation={"max_daily_hours": 2, "step_minutes": 30})

        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY)
        )

        assert sum(slot.time_range.duration_hours() for slot in slots) == 2

    def test_no_double_booking(self, config):
        therapists = [make_therapist("t1"), make_therapist("t2")]
        clients = [make_client("c1"), make_client("c2"), make_client("c3")]

        slots = CandidateGenerator(config).generate(therapists, clients, [], _day(MONDAY), _day(MONDAY))

        assert slots
        assert validate_schedule(slots, therapists, clients, config).valid
        for first in slots:
            for second in slots:
                if first is second:
                    continue
                if first.therapist_id == second.therapist_id or first.client_id == second.client_id:
                    assert not first.time_range.overlaps(second.time_range)

    def test_existing_sessions_block_time(self, config):
        sessions = [make_session("s1", "09:00", "10:00", client_id="c2")]

        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], sessions, _day(MONDAY), _day(MONDAY)
        )

        booked = sessions[0].time_range
        assert slots
        for slot in slots:
            assert not slot.time_range.overlaps(booked)
            assert slot.time_range.gap_minutes(booked) >= config.generation.min_break_minutes

    def test_cancelled_sessions_do_not_block(self, config):
        sessions = [make_session("s1", "09:00", "10:00", status="cancelled")]

        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], sessions, _day(MONDAY), _day(MONDAY)
        )

        assert at(MONDAY, "09:00") in [slot.start for slot in slots]

    def test_excluded_weekday(self, config):
        sunday = "2024-12-01"
        therapist = make_therapist(availability=weekdays(days=range(7)))
        client = make_client(availability=weekdays(days=range(7)))

        assert CandidateGenerator(config).generate([therapist], [client], [], _day(sunday), _day(sunday)) == []

    @pytest.mark.parametrize("sunday", ["2024-03-10", "2024-11-03"])
    def test_daylight_saving_change(self, sunday):
        """Start times follow the wall clock on days when the UTC offset changes."""
        config = SchedulerConfig(timezone=TZ, generation={"exclude_days": [], "min_score": 0})
        therapist = make_therapist(availability=weekdays("00:00", "23:59", days=range(7)))
        client = make_client(availability=weekdays("00:00", "23:59", days=range(7)))

        slots = CandidateGenerator(config).generate([therapist], [client], [], _day(sunday), _day(sunday))

        starts = sorted(slot.start.in_timezone(TZ).format("HH:mm") for slot in slots)
        assert starts[0] == "08:00"
        assert all(start.endswith(":00") and start < "18:00" for start in starts)

    def test_horizon_starts_mid_week(self, config):
        """Days before the start date are never proposed, even within the same week."""
        therapist = make_therapist(availability=weekdays())
        client = make_client(availability=weekdays())
        wednesday = "2024-11-27"

        slots = CandidateGenerator(config).generate(
            [therapist], [client], [], at(wednesday, "00:00"), at("2024-11-28", "23:59")
        )

        assert slots
        assert {slot.start.in_timezone(TZ).date() for slot in slots} <= {_day(wednesday), _day("2024-11-28")}

    def test_max_results(self):
        config = SchedulerConfig(timezone=TZ, generation={"max_results": 2})

        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY)
        )

        assert len(slots) == 2

    def test_session_duration_override(self, config):
        slots = CandidateGenerator(config).generate(
            [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY), session_duration_minutes=90
        )

        assert slots
        assert all(slot.time_range.duration_minutes() == 90 for slot in slots)

    def test_service_radius(self, config):
        therapist = make_therapist(location=HOME, service_radius_km=5)
        client = make_client(location=Coordinate(latitude=34.1, longitude=-118.0))

        assert CandidateGenerator(config).generate([therapist], [client], [], _day(MONDAY), _day(MONDAY)) == []

        relaxed = SchedulerConfig(timezone=TZ, generation={"enforce_service_radius": False})
        assert CandidateGenerator(relaxed).generate([therapist], [client], [], _day(MONDAY), _day(MONDAY))

    def test_slot_carries_client_location(self, config):
        client = make_client(location=HOME)

        slots = CandidateGenerator(config).generate([make_therapist()], [client], [], _day(MONDAY), _day(MONDAY))

        assert all(slot.location == HOME for slot in slots)

    def test_injected_cache_is_used(self, config):
        cache = BoundedScoreCache(max_entries=100, ttl_seconds=60)

        CandidateGenerator(config, cache=cache).generate(
            [make_therapist()], [make_client()], [], _day(MONDAY), _day(MONDAY)
        )

        assert len(cache) > 0
        assert cache.hits > 0
