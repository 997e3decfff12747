"""
Domain models for therapists, clients, sessions and the schedule outputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInputError

WEEKDAY_NAMES = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


def parse_weekday(key: int | str) -> int:
    """
    Normalize a weekday key to 0=Monday ... 6=Sunday.

    Raises:
        InvalidInputError: If the key is not a known weekday
    """
    if isinstance(key, bool):
        raise InvalidInputError(f"Unknown weekday key: {key!r}")
    if isinstance(key, int):
        if 0 <= key <= 6:
            return key
        raise InvalidInputError(f"Weekday must be between 0 and 6, got {key}")
    if isinstance(key, str):
        name = key.strip().lower()
        if name in WEEKDAY_NAMES:
            return WEEKDAY_NAMES.index(name)
    raise InvalidInputError(f"Unknown weekday key: {key!r}")


def to_local(instant: datetime, timezone: str) -> DateTime:
    """Convert an aware instant into the canonical scheduling timezone."""
    if instant.tzinfo is None:
        raise InvalidInputError(f"Instant {instant} has no timezone")
    return pendulum.instance(instant).in_timezone(timezone)


def hour_of_day(instant: DateTime) -> float:
    """Fractional hour of a local instant, e.g. 10:30 -> 10.5."""
    return instant.hour + instant.minute / 60 + instant.second / 3600


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidInputError(f"Time range {self.start} - {self.end} must be timezone-aware")
        if self.start >= self.end:
            raise InvalidInputError(f"Start time {self.start} must be before end time {self.end}")
        object.__setattr__(self, "start", pendulum.instance(self.start))
        object.__setattr__(self, "end", pendulum.instance(self.end))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def duration_hours(self) -> float:
        """Return the duration in (fractional) hours."""
        return (self.end - self.start).total_seconds() / 3600

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Boundary-inclusive: ranges that only share an endpoint overlap.
        """
        return self.start <= other.end and other.start <= self.end

    def gap_minutes(self, other: "TimeRange") -> float:
        """Minutes between the two ranges, 0 if they overlap."""
        if self.overlaps(other):
            return 0.0
        if self.end < other.start:
            return (other.start - self.end).total_seconds() / 60
        return (self.start - other.end).total_seconds() / 60

    def in_timezone(self, timezone: str) -> "TimeRange":
        return TimeRange(start=to_local(self.start, timezone), end=to_local(self.end, timezone))

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class TimeWindow:
    """
    Daily availability window in local wall-clock time.

    Invariant: start must be before end.
    """
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInputError(
                f"Availability window start {self.start} must be before end {self.end}"
            )

    def contains(self, time_range: TimeRange, timezone: str) -> bool:
        """Check whether a range lies entirely inside this window on its local day."""
        local_start = to_local(time_range.start, timezone)
        local_end = to_local(time_range.end, timezone)
        if local_start.date() != local_end.date():
            return False
        return self.start <= local_start.time() and local_end.time() <= self.end

    def __str__(self) -> str:
        return f"{self.start.strftime('%H:%M')} - {self.end.strftime('%H:%M')}"


def normalize_availability(
    availability: Optional[Mapping[int | str, Optional[TimeWindow]]],
) -> Dict[int, TimeWindow]:
    """Key availability by weekday index, dropping closed days."""
    normalized: Dict[int, TimeWindow] = {}
    for key, window in (availability or {}).items():
        weekday = parse_weekday(key)
        if window is None:
            continue
        if not isinstance(window, TimeWindow):
            raise InvalidInputError(f"Availability for {key!r} must be a TimeWindow, got {window!r}")
        normalized[weekday] = window
    return normalized


def _string_set(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        return frozenset([values])
    return frozenset(values)


@dataclass(frozen=True)
class Coordinate:
    """A point on the map, optionally labelled with its street address."""
    latitude: float
    longitude: float
    address: Optional[str] = None

    def __post_init__(self):
        if not -90 <= self.latitude <= 90:
            raise InvalidInputError(f"Latitude must be between -90 and 90, got {self.latitude}")
        if not -180 <= self.longitude <= 180:
            raise InvalidInputError(f"Longitude must be between -180 and 180, got {self.longitude}")


@dataclass
class Therapist:
    """Therapist record as supplied by the entity-management layer."""
    id: str
    name: str = ""
    service_types: FrozenSet[str] = field(default_factory=frozenset)
    specialties: FrozenSet[str] = field(default_factory=frozenset)
    languages: FrozenSet[str] = field(default_factory=frozenset)
    years_experience: int = 0
    availability: Dict[int, TimeWindow] = field(default_factory=dict)
    weekly_hours_min: float = 0
    weekly_hours_max: float = 40
    location: Optional[Coordinate] = None
    service_radius_km: Optional[float] = None

    def __post_init__(self):
        self.service_types = _string_set(self.service_types)
        self.specialties = _string_set(self.specialties)
        self.languages = _string_set(self.languages)
        self.availability = normalize_availability(self.availability)
        if self.weekly_hours_min < 0 or self.weekly_hours_max < 0:
            raise InvalidInputError(f"Therapist {self.id}: weekly hours must not be negative")
        if self.weekly_hours_min > self.weekly_hours_max:
            raise InvalidInputError(
                f"Therapist {self.id}: weekly_hours_min {self.weekly_hours_min} "
                f"exceeds weekly_hours_max {self.weekly_hours_max}"
            )

    def display_name(self) -> str:
        return self.name or self.id

    def window_for(self, weekday: int) -> Optional[TimeWindow]:
        return self.availability.get(weekday)


@dataclass
class Client:
    """Client record as supplied by the entity-management layer."""
    id: str
    name: str = ""
    service_preferences: FrozenSet[str] = field(default_factory=frozenset)
    diagnoses: FrozenSet[str] = field(default_factory=frozenset)
    preferred_language: str = "English"
    availability: Dict[int, TimeWindow] = field(default_factory=dict)
    authorized_hours: float = 0
    address: Optional[str] = None
    location: Optional[Coordinate] = None
    preferred_radius_km: Optional[float] = None

    def __post_init__(self):
        self.service_preferences = _string_set(self.service_preferences)
        self.diagnoses = _string_set(self.diagnoses)
        self.availability = normalize_availability(self.availability)
        if self.authorized_hours < 0:
            raise InvalidInputError(f"Client {self.id}: authorized_hours must not be negative")

    def display_name(self) -> str:
        return self.name or self.id

    def window_for(self, weekday: int) -> Optional[TimeWindow]:
        return self.availability.get(weekday)


class SessionStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"


@dataclass(frozen=True)
class Session:
    """
    An existing booking. Read-only to the scheduler.

    Cancelled sessions free their time: they never overlap and never count
    toward workload.
    """
    id: str
    therapist_id: str
    client_id: str
    start: DateTime
    end: DateTime
    status: SessionStatus = SessionStatus.SCHEDULED
    notes: Optional[str] = None

    def __post_init__(self):
        try:
            status = SessionStatus(self.status)
        except ValueError as exc:
            raise InvalidInputError(f"Session {self.id}: unknown status {self.status!r}") from exc
        object.__setattr__(self, "status", status)
        # Validates awareness and ordering.
        time_range = TimeRange(start=self.start, end=self.end)
        object.__setattr__(self, "start", time_range.start)
        object.__setattr__(self, "end", time_range.end)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    @property
    def blocks_time(self) -> bool:
        return self.status is not SessionStatus.CANCELLED

    def involves(self, therapist_id: str, client_id: str) -> bool:
        return self.therapist_id == therapist_id or self.client_id == client_id


@dataclass(frozen=True)
class ProposedSession:
    """A booking request to be checked before it is committed."""
    therapist_id: str
    client_id: str
    start: DateTime
    end: DateTime

    def __post_init__(self):
        time_range = TimeRange(start=self.start, end=self.end)
        object.__setattr__(self, "start", time_range.start)
        object.__setattr__(self, "end", time_range.end)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class SlotScore:
    """Per-factor breakdown of a slot's combined score."""
    compatibility: float
    availability: float
    workload: float
    travel: float
    continuity: float
    urgency: float
    efficiency: float
    total: float

    def as_dict(self) -> Dict[str, float]:
        return {
            "compatibility": self.compatibility,
            "availability": self.availability,
            "workload": self.workload,
            "travel": self.travel,
            "continuity": self.continuity,
            "urgency": self.urgency,
            "efficiency": self.efficiency,
        }


@dataclass(frozen=True)
class ScheduleSlot:
    """
    A proposed (therapist, client, time) assignment that has not been booked.
    """
    therapist_id: str
    client_id: str
    start: DateTime
    end: DateTime
    score: float
    location: Optional[Coordinate] = None
    breakdown: Optional[SlotScore] = field(default=None, compare=False)

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)

    def format_display(self) -> str:
        """Format: Monday, 25.11.2024 | 09:00 – 10:00 (60 min)"""
        duration = self.time_range.duration_minutes()
        return (
            f"{self.start.format('dddd, DD.MM.YYYY')} | "
            f"{self.start.format('HH:mm')} – {self.end.format('HH:mm')} ({duration} min)"
        )


class ConflictType(str, Enum):
    THERAPIST_UNAVAILABLE = "therapist_unavailable"
    CLIENT_UNAVAILABLE = "client_unavailable"
    SESSION_OVERLAP = "session_overlap"


@dataclass(frozen=True)
class Conflict:
    type: ConflictType
    message: str
    session_id: Optional[str] = None


@dataclass(frozen=True)
class AlternativeTime:
    start: DateTime
    end: DateTime
    score: float
    reason: str
