"""Appointment lifecycle state machine."""

from datetime import datetime
from typing import Any

from therapy_booking.core.exceptions import IllegalStatusTransitionError
from therapy_booking.schemas.appointments import AppointmentStatus

ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    # No transition produces NO_SHOW; the status is kept for records imported
    # with it and stays terminal.
    AppointmentStatus.NO_SHOW: frozenset(),
}

INITIAL_STATUS = AppointmentStatus.SCHEDULED

# Statuses that hold the provider's time
NON_TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset(
    {
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.IN_PROGRESS,
    }
)

TERMINAL_STATUSES: frozenset[AppointmentStatus] = frozenset(AppointmentStatus) - NON_TERMINAL_STATUSES


def is_terminal(status: AppointmentStatus) -> bool:
    """Check whether a status has no outgoing transitions."""
    return status in TERMINAL_STATUSES


def can_transition(current: AppointmentStatus, requested: AppointmentStatus) -> bool:
    """Check whether ``current -> requested`` is in the transition table."""
    return requested in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, requested: AppointmentStatus) -> None:
    """
    Reject transitions that are not in the table.

    Raises:
        IllegalStatusTransitionError: Naming both statuses
    """
    if not can_transition(current, requested):
        raise IllegalStatusTransitionError(current.value, requested.value)


def transition_values(
    current: AppointmentStatus,
    requested: AppointmentStatus,
    now: datetime,
    reason: str | None = None,
) -> dict[str, Any]:
    """
    Build the column values written by a permitted transition.

    Only a move into CANCELLED touches fields besides ``status``: the
    cancellation timestamp and reason are written together with it.

    Args:
        current: Status currently stored
        requested: Status asked for
        now: Transition instant
        reason: Cancellation reason, ignored for other targets

    Returns:
        Column values to persist

    Raises:
        IllegalStatusTransitionError: If the transition is not permitted
    """
    ensure_transition(current, requested)

    values: dict[str, Any] = {"status": requested.value}
    if requested is AppointmentStatus.CANCELLED:
        values["cancelled_at"] = now
        values["cancellation_reason"] = reason
    return values
