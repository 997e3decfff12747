"""
Post-hoc checks on a proposed schedule, and picking a replacement slot.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import SchedulerConfig
from .models import Client, ScheduleSlot, Session, Therapist, to_local


@dataclass
class ScheduleValidation:
    valid: bool
    violations: List[str] = field(default_factory=list)


def validate_schedule(
    slots: Sequence[ScheduleSlot],
    therapists: Sequence[Therapist],
    clients: Sequence[Client],
    config: SchedulerConfig,
) -> ScheduleValidation:
    """
    Report daily-hour overruns, weekly-cap overruns and double bookings.

    Only the slots themselves are checked; existing sessions are not counted.
    """
    timezone = config.timezone
    weekly_caps = {therapist.id: therapist.weekly_hours_max for therapist in therapists}
    client_caps = {client.id: client.authorized_hours for client in clients}
    violations: List[str] = []

    daily: Dict[Tuple[str, str], float] = defaultdict(float)
    weekly: Dict[Tuple[str, str, str], float] = defaultdict(float)
    by_party: Dict[Tuple[str, str], List[ScheduleSlot]] = defaultdict(list)

    for slot in slots:
        local_start = to_local(slot.start, timezone)
        day = local_start.format("YYYY-MM-DD")
        week = local_start.start_of("week").format("YYYY-MM-DD")
        hours = slot.time_range.duration_hours()
        daily[(slot.therapist_id, day)] += hours
        weekly[("therapist", slot.therapist_id, week)] += hours
        weekly[("client", slot.client_id, week)] += hours
        by_party[("Therapist", slot.therapist_id)].append(slot)
        by_party[("Client", slot.client_id)].append(slot)

    for (therapist_id, day), hours in sorted(daily.items()):
        if hours > config.generation.max_daily_hours:
            violations.append(f"Therapist {therapist_id} exceeds maximum daily hours on {day}")

    for (role, entity_id, week), hours in sorted(weekly.items()):
        cap = weekly_caps.get(entity_id) if role == "therapist" else client_caps.get(entity_id)
        if cap is not None and hours > cap:
            violations.append(
                f"{role.capitalize()} {entity_id} has {hours:g} hours in week of {week}, cap is {cap:g}"
            )

    for (role, entity_id), party_slots in sorted(by_party.items()):
        ordered = sorted(party_slots, key=lambda slot: slot.start)
        for earlier, later in zip(ordered, ordered[1:]):
            if earlier.time_range.overlaps(later.time_range):
                violations.append(
                    f"{role} {entity_id} is double-booked at {to_local(later.start, timezone).format('YYYY-MM-DD HH:mm')}"
                )

    return ScheduleValidation(valid=not violations, violations=violations)


def reschedule_session(
    session: Session,
    candidates: Sequence[ScheduleSlot],
    sessions: Sequence[Session],
) -> Optional[ScheduleSlot]:
    """
    Best-scoring candidate for moving a session.

    A candidate qualifies when it keeps the session's therapist and client
    and overlaps no other blocking session of either party.
    """
    others = [
        other
        for other in sessions
        if other.id != session.id
        and other.blocks_time
        and other.involves(session.therapist_id, session.client_id)
    ]
    eligible = [
        slot
        for slot in candidates
        if slot.therapist_id == session.therapist_id
        and slot.client_id == session.client_id
        and not any(other.time_range.overlaps(slot.time_range) for other in others)
    ]
    if not eligible:
        return None
    return max(eligible, key=lambda slot: (slot.score, -slot.start.timestamp()))
