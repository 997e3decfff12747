"""
Tests for alternative time suggestions.
"""

from factories import MONDAY, TZ, at, make_client, make_session, make_therapist, weekdays
from therapyscheduler.config import SchedulerConfig
from therapyscheduler.domain.alternatives import AlternativeTimeSuggester, describe_shift
from therapyscheduler.domain.conflict_detector import detect_conflicts
from therapyscheduler.domain.models import ProposedSession, TimeRange


def _proposal(start: str, end: str, day: str = MONDAY) -> ProposedSession:
    return ProposedSession(therapist_id="t1", client_id="c1", start=at(day, start), end=at(day, end))


class TestDescribeShift:
    """Tests for the human-readable reason."""

    def test_same_day(self):
        original = TimeRange(start=at(MONDAY, "10:30"), end=at(MONDAY, "11:30"))
        later = TimeRange(start=at(MONDAY, "12:00"), end=at(MONDAY, "13:00"))

        assert describe_shift(original, later, TZ) == "Same day, 1 hour 30 minutes later"

    def test_other_day_same_time(self):
        original = TimeRange(start=at(MONDAY, "10:00"), end=at(MONDAY, "11:00"))
        tuesday = TimeRange(start=at("2024-11-26", "10:00"), end=at("2024-11-26", "11:00"))

        assert describe_shift(original, tuesday, TZ) == "1 day later (Tuesday), same time"

    def test_earlier(self):
        original = TimeRange(start=at(MONDAY, "10:00"), end=at(MONDAY, "11:00"))
        saturday = TimeRange(start=at("2024-11-23", "08:00"), end=at("2024-11-23", "09:00"))

        assert describe_shift(original, saturday, TZ) == "2 days earlier (Saturday), 2 hours earlier"


class TestAlternativeTimeSuggester:
    """Tests for AlternativeTimeSuggester."""

    def test_alternatives_for_overlap(self, config):
        therapist = make_therapist()
        client = make_client()
        sessions = [make_session("s1", "10:00", "11:00")]
        proposal = _proposal("10:30", "11:30")
        conflicts = detect_conflicts(proposal, therapist, client, sessions, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, sessions)

        assert 0 < len(alternatives) <= config.alternatives.max_results
        for alternative in alternatives:
            candidate = ProposedSession(
                therapist_id="t1", client_id="c1", start=alternative.start, end=alternative.end
            )
            assert detect_conflicts(candidate, therapist, client, sessions, TZ) == []
            assert alternative.score > 0
            assert (alternative.end - alternative.start).in_minutes() == 60

    def test_ranked_by_score_then_closeness(self, config):
        therapist = make_therapist()
        client = make_client()
        sessions = [make_session("s1", "10:00", "11:00")]
        proposal = _proposal("10:30", "11:30")
        conflicts = detect_conflicts(proposal, therapist, client, sessions, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, sessions)

        scores = [alternative.score for alternative in alternatives]
        assert scores == sorted(scores, reverse=True)
        assert alternatives[0].start == at(MONDAY, "11:30")
        assert alternatives[0].reason == "Same day, 1 hour later: no overlapping sessions"

    def test_nearby_days_are_searched(self, config):
        therapist = make_therapist(availability=weekdays())
        client = make_client(availability=weekdays())
        busy_day = [
            make_session("s1", "07:00", "14:00", client_id="c2"),
            make_session("s2", "14:00", "18:00", client_id="c3"),
        ]
        proposal = _proposal("10:00", "11:00")
        conflicts = detect_conflicts(proposal, therapist, client, busy_day, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, busy_day)

        assert alternatives
        monday = at(MONDAY, "00:00").date()
        assert all(alternative.start.in_timezone(TZ).date() != monday for alternative in alternatives)

    def test_no_availability(self, config):
        therapist = make_therapist(availability={})
        client = make_client()
        proposal = _proposal("10:00", "11:00")
        conflicts = detect_conflicts(proposal, therapist, client, [], TZ)

        assert AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, []) == []

    def test_weekly_cap_is_respected(self, config):
        """Every weekday in reach falls in a week where the therapist is already at the cap."""
        therapist = make_therapist(availability=weekdays(), weekly_hours_min=0, weekly_hours_max=2)
        client = make_client(availability=weekdays())
        sessions = [make_session("s1", "10:00", "11:00"), make_session("s2", "14:00", "15:00", client_id="c2")]
        proposal = _proposal("10:30", "11:30")
        conflicts = detect_conflicts(proposal, therapist, client, sessions, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, sessions)

        assert alternatives == []

    def test_client_authorization_is_respected(self, config):
        """The client already used their weekly authorization with another therapist."""
        therapist = make_therapist()
        client = make_client(authorized_hours=1)
        sessions = [
            make_session("s1", "10:00", "11:00", client_id="c2"),
            make_session("s2", "09:00", "10:00", therapist_id="t9", day="2024-11-26"),
        ]
        proposal = _proposal("10:30", "11:30")
        conflicts = detect_conflicts(proposal, therapist, client, sessions, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, sessions)

        assert alternatives == []

    def test_daily_hour_cap_is_respected(self):
        config = SchedulerConfig(timezone=TZ, generation={"max_daily_hours": 2})
        therapist = make_therapist()
        client = make_client()
        sessions = [
            make_session("s1", "09:00", "10:00", client_id="c2"),
            make_session("s2", "10:00", "11:00", client_id="c3"),
        ]
        proposal = _proposal("10:30", "11:30")
        conflicts = detect_conflicts(proposal, therapist, client, sessions, TZ)

        alternatives = AlternativeTimeSuggester(config).suggest(proposal, conflicts, therapist, client, sessions)

        assert alternatives == []

    def test_max_results(self):
        config = SchedulerConfig(timezone=TZ, alternatives={"max_results": 2})
        therapist = make_therapist()
        client = make_client()
        sessions = [make_session("s1", "10:00", "11:00")]
        proposal = _proposal("10:30", "11:30")

        alternatives = AlternativeTimeSuggester(config).suggest(
            proposal, detect_conflicts(proposal, therapist, client, sessions, TZ), therapist, client, sessions
        )

        assert len(alternatives) == 2
