"""Provider double-booking detection."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from therapy_booking.core.exceptions import SchedulingConflictError
from therapy_booking.domain.lifecycle import NON_TERMINAL_STATUSES
from therapy_booking.schemas.appointments import AppointmentStatus


@dataclass(frozen=True)
class BookedInterval:
    """The parts of an existing appointment that matter for overlap checks."""

    appointment_id: UUID
    provider_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus

    @classmethod
    def from_row(cls, row: dict) -> "BookedInterval":
        return cls(
            appointment_id=row["id"],
            provider_id=row["provider_id"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            status=AppointmentStatus(row["status"]),
        )


def intervals_overlap(
    a_start: datetime,
    a_end: datetime,
    b_start: datetime,
    b_end: datetime,
) -> bool:
    """
    Half-open overlap test for ``[a_start, a_end)`` and ``[b_start, b_end)``.

    Back-to-back intervals (``a_end == b_start``) do not overlap.
    """
    return a_start < b_end and b_start < a_end


def find_conflict(
    provider_id: UUID,
    start_time: datetime,
    end_time: datetime,
    existing: Iterable[BookedInterval],
) -> BookedInterval | None:
    """
    Find an existing booking of the provider that overlaps the proposed slot.

    Bookings of other providers and bookings in a terminal status are
    ignored. When several bookings overlap, the earliest-starting one is
    returned.

    Args:
        provider_id: Provider being booked
        start_time: Proposed start
        end_time: Proposed end
        existing: Candidate bookings

    Returns:
        The conflicting booking, or None
    """
    candidates = sorted(
        (
            booked
            for booked in existing
            if booked.provider_id == provider_id and booked.status in NON_TERMINAL_STATUSES
        ),
        key=lambda booked: (booked.start_time, str(booked.appointment_id)),
    )

    for booked in candidates:
        if intervals_overlap(start_time, end_time, booked.start_time, booked.end_time):
            return booked

    return None


def ensure_no_conflict(
    provider_id: UUID,
    start_time: datetime,
    end_time: datetime,
    existing: Iterable[BookedInterval],
) -> None:
    """
    Raise if the proposed slot collides with an active booking.

    Raises:
        SchedulingConflictError: Naming the existing appointment
    """
    conflict = find_conflict(provider_id, start_time, end_time, existing)
    if conflict is not None:
        raise SchedulingConflictError(conflict.appointment_id)
