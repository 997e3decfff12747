"""
Roster file adapter: loads therapists, clients and sessions from YAML or JSON.

Stands in for the entity-management layer when the scheduler is driven
from the command line.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import pendulum
import yaml
from pendulum import DateTime

from ..domain.exceptions import InvalidInputError, RosterFormatError
from ..domain.models import (
    Client,
    Coordinate,
    Session,
    Therapist,
    TimeWindow,
    parse_weekday,
)


@dataclass
class Roster:
    """Everything the scheduler needs about the people and their bookings."""
    therapists: List[Therapist] = field(default_factory=list)
    clients: List[Client] = field(default_factory=list)
    sessions: List[Session] = field(default_factory=list)

    def find_therapist(self, therapist_id: str) -> Therapist | None:
        for therapist in self.therapists:
            if therapist.id == therapist_id:
                return therapist
        return None

    def find_client(self, client_id: str) -> Client | None:
        for client in self.clients:
            if client.id == client_id:
                return client
        return None


def parse_clock_time(value: Any) -> time:
    """
    Parse "HH:mm" into a time.

    YAML 1.1 reads unquoted values such as 10:00 as base-60 integers (600),
    so integers are accepted as minutes after midnight.
    """
    if isinstance(value, time):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        hours, minutes = divmod(value, 60)
        if not 0 <= hours <= 23:
            raise InvalidInputError(f"Invalid time of day: {value}")
        return time(hour=hours, minute=minutes)
    if isinstance(value, str):
        try:
            return pendulum.from_format(value.strip(), "HH:mm").time()
        except ValueError as exc:
            raise InvalidInputError(f"Invalid time of day {value!r}, expected HH:mm") from exc
    raise InvalidInputError(f"Invalid time of day: {value!r}")


def parse_instant(value: Any, timezone: str) -> DateTime:
    """Parse an ISO timestamp; naive values are interpreted in the scheduling timezone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return pendulum.instance(value, tz=timezone)
        return pendulum.instance(value)
    if isinstance(value, str):
        try:
            parsed = pendulum.parse(value, tz=timezone)
        except ValueError as exc:
            raise InvalidInputError(f"Invalid timestamp {value!r}") from exc
        if not isinstance(parsed, DateTime):
            raise InvalidInputError(f"Timestamp {value!r} must include a date and a time")
        return parsed
    raise InvalidInputError(f"Invalid timestamp: {value!r}")


def parse_availability(raw: Optional[Mapping[str, Any]]) -> Dict[int, TimeWindow]:
    """Weekday name -> {start, end}; null entries or null bounds mean closed."""
    availability: Dict[int, TimeWindow] = {}
    if not raw:
        return availability
    if not isinstance(raw, Mapping):
        raise InvalidInputError("availability must be a mapping of weekday to {start, end}")

    for key, window in raw.items():
        weekday = parse_weekday(key)
        if window is not None and not isinstance(window, Mapping):
            raise InvalidInputError(f"availability for {key!r} must be a mapping with start and end")
        if not window or window.get("start") is None or window.get("end") is None:
            continue
        availability[weekday] = TimeWindow(
            start=parse_clock_time(window["start"]),
            end=parse_clock_time(window["end"]),
        )
    return availability


def parse_location(record: Mapping[str, Any]) -> Optional[Coordinate]:
    location = record.get("location")
    if location is None:
        return None
    return Coordinate(
        latitude=float(location["latitude"]),
        longitude=float(location["longitude"]),
        address=location.get("address") or record.get("address"),
    )


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def parse_therapist(record: Mapping[str, Any]) -> Therapist:
    return Therapist(
        id=str(record["id"]),
        name=record.get("name", ""),
        service_types=record.get("service_types", []),
        specialties=record.get("specialties", []),
        languages=record.get("languages", []),
        years_experience=int(record.get("years_experience", 0)),
        availability=parse_availability(record.get("availability")),
        weekly_hours_min=float(record.get("weekly_hours_min", 0)),
        weekly_hours_max=float(record.get("weekly_hours_max", 40)),
        location=parse_location(record),
        service_radius_km=_optional_float(record.get("service_radius_km")),
    )


def parse_client(record: Mapping[str, Any]) -> Client:
    return Client(
        id=str(record["id"]),
        name=record.get("name", ""),
        service_preferences=record.get("service_preferences", []),
        diagnoses=record.get("diagnoses", []),
        preferred_language=record.get("preferred_language") or "English",
        availability=parse_availability(record.get("availability")),
        authorized_hours=float(record.get("authorized_hours", 0)),
        address=record.get("address"),
        location=parse_location(record),
        preferred_radius_km=_optional_float(record.get("preferred_radius_km")),
    )


def parse_session(record: Mapping[str, Any], timezone: str) -> Session:
    return Session(
        id=str(record["id"]),
        therapist_id=str(record["therapist_id"]),
        client_id=str(record["client_id"]),
        start=parse_instant(record["start"], timezone),
        end=parse_instant(record["end"], timezone),
        status=record.get("status", "scheduled"),
        notes=record.get("notes"),
    )


def _parse_records(data: Mapping[str, Any], key: str, parse) -> list:
    records = data.get(key) or []
    if not isinstance(records, list):
        raise RosterFormatError(f"'{key}' must be a list")

    parsed = []
    for index, record in enumerate(records):
        try:
            if not isinstance(record, Mapping):
                raise InvalidInputError("record must be a mapping")
            parsed.append(parse(record))
        except (KeyError, TypeError, ValueError) as exc:
            label = record.get("id", index) if isinstance(record, Mapping) else index
            raise RosterFormatError(f"Invalid {key[:-1]} record {label!r}: {exc}") from exc
    return parsed


def roster_from_mapping(data: Mapping[str, Any], timezone: str) -> Roster:
    """Build a Roster from an already-decoded document."""
    if not isinstance(data, Mapping):
        raise RosterFormatError("Roster file must contain a mapping at the root level.")
    return Roster(
        therapists=_parse_records(data, "therapists", parse_therapist),
        clients=_parse_records(data, "clients", parse_client),
        sessions=_parse_records(data, "sessions", lambda record: parse_session(record, timezone)),
    )


def load_roster(roster_path: Path, timezone: str) -> Roster:
    """
    Load a roster from a YAML (or JSON) file.

    Args:
        roster_path: Path to the roster document
        timezone: Timezone applied to timestamps without an offset

    Returns:
        Roster instance

    Raises:
        FileNotFoundError: If the file doesn't exist
        RosterFormatError: If the document or one of its records is invalid
    """
    if not roster_path.exists():
        raise FileNotFoundError(f"Roster file not found: {roster_path}")

    try:
        with open(roster_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise RosterFormatError(f"Invalid YAML in {roster_path}: {exc}") from exc

    return roster_from_mapping(data, timezone)
