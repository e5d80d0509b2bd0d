"""Pure scheduling rules: slot window, overlap, lifecycle and fees."""

from therapy_booking.domain.access import (
    can_book,
    can_manage_appointment,
    can_record_payment_status,
)
from therapy_booking.domain.conflicts import (
    BookedInterval,
    ensure_no_conflict,
    find_conflict,
    intervals_overlap,
)
from therapy_booking.domain.fees import calculate_total_amount
from therapy_booking.domain.lifecycle import (
    ALLOWED_TRANSITIONS,
    INITIAL_STATUS,
    NON_TERMINAL_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
    ensure_transition,
    is_terminal,
    transition_values,
)
from therapy_booking.domain.slots import (
    DEFAULT_BOOKING_HORIZON,
    duration_minutes,
    validate_slot,
)

__all__ = [
    "ALLOWED_TRANSITIONS",
    "DEFAULT_BOOKING_HORIZON",
    "INITIAL_STATUS",
    "NON_TERMINAL_STATUSES",
    "TERMINAL_STATUSES",
    "BookedInterval",
    "calculate_total_amount",
    "can_book",
    "can_manage_appointment",
    "can_record_payment_status",
    "can_transition",
    "duration_minutes",
    "ensure_no_conflict",
    "ensure_transition",
    "find_conflict",
    "intervals_overlap",
    "is_terminal",
    "transition_values",
    "validate_slot",
]
