"""
Checks a proposed or edited session against availability and existing bookings.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from .exceptions import InvalidInputError
from .models import (
    Client,
    Conflict,
    ConflictType,
    ProposedSession,
    Session,
    Therapist,
    TimeRange,
    to_local,
)
from .scoring import blocking_sessions

TIME_FORMAT = "h:mm A"


def _availability_conflict(
    role: str,
    party: Therapist | Client,
    time_range: TimeRange,
    timezone: str,
    conflict_type: ConflictType,
) -> Optional[Conflict]:
    local_start = to_local(time_range.start, timezone)
    window = party.window_for(local_start.weekday())
    if window is None:
        return Conflict(
            type=conflict_type,
            message=f"{role} {party.display_name()} is not available on {local_start.format('dddd')}s",
        )
    if not window.contains(time_range, timezone):
        return Conflict(
            type=conflict_type,
            message=f"{role} {party.display_name()} is not available during this time",
        )
    return None


def overlapping_sessions(
    time_range: TimeRange,
    therapist_id: str,
    client_id: str,
    sessions: Sequence[Session],
    exclude_session_id: Optional[str] = None,
) -> List[Session]:
    """Blocking sessions of either party that overlap the range, earliest first."""
    overlapping = [
        session
        for session in blocking_sessions(sessions, therapist_id, client_id)
        if session.id != exclude_session_id and session.time_range.overlaps(time_range)
    ]
    return sorted(overlapping, key=lambda session: session.start)


def detect_conflicts(
    proposal: ProposedSession,
    therapist: Therapist,
    client: Client,
    sessions: Sequence[Session],
    timezone: str,
    exclude_session_id: Optional[str] = None,
) -> List[Conflict]:
    """
    Collect every reason the proposal cannot be booked as is.

    Checks do not short-circuit: unavailability of both parties and every
    overlapping session are all reported. An empty list means the proposal
    is clear to book.

    Raises:
        InvalidInputError: If the supplied records do not match the proposal
    """
    if proposal.therapist_id != therapist.id:
        raise InvalidInputError(
            f"Proposal is for therapist {proposal.therapist_id}, got record {therapist.id}"
        )
    if proposal.client_id != client.id:
        raise InvalidInputError(f"Proposal is for client {proposal.client_id}, got record {client.id}")

    time_range = proposal.time_range
    conflicts: List[Conflict] = []

    for role, party, conflict_type in (
        ("Therapist", therapist, ConflictType.THERAPIST_UNAVAILABLE),
        ("Client", client, ConflictType.CLIENT_UNAVAILABLE),
    ):
        conflict = _availability_conflict(role, party, time_range, timezone, conflict_type)
        if conflict is not None:
            conflicts.append(conflict)

    for session in overlapping_sessions(
        time_range, therapist.id, client.id, sessions, exclude_session_id
    ):
        start = to_local(session.start, timezone).format(TIME_FORMAT)
        end = to_local(session.end, timezone).format(TIME_FORMAT)
        conflicts.append(
            Conflict(
                type=ConflictType.SESSION_OVERLAP,
                message=f"Conflicts with existing session from {start} to {end}",
                session_id=session.id,
            )
        )

    return conflicts
