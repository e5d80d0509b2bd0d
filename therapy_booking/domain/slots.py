"""Booking window validation."""

import math
from datetime import datetime, timedelta

from therapy_booking.core.exceptions import (
    BookingTooFarOutError,
    InvalidIntervalError,
    PastBookingError,
)

DEFAULT_BOOKING_HORIZON = timedelta(days=90)


def validate_slot(
    start_time: datetime,
    end_time: datetime,
    now: datetime,
    horizon: timedelta = DEFAULT_BOOKING_HORIZON,
) -> None:
    """
    Check a proposed ``[start_time, end_time)`` slot against the booking window.

    Rules are applied in order and the first violation wins.

    Args:
        start_time: Proposed start (timezone-aware)
        end_time: Proposed end (timezone-aware)
        now: Reference instant
        horizon: How far ahead of ``now`` a slot may start

    Raises:
        InvalidIntervalError: If end_time is not strictly after start_time
        PastBookingError: If start_time is before now
        BookingTooFarOutError: If start_time is more than horizon after now
    """
    if end_time <= start_time:
        raise InvalidIntervalError()

    if start_time < now:
        raise PastBookingError()

    if start_time > now + horizon:
        raise BookingTooFarOutError(horizon_days=horizon.days)


def duration_minutes(start_time: datetime, end_time: datetime) -> int:
    """Length of a slot in whole minutes, rounded half-up."""
    seconds = (end_time - start_time).total_seconds()
    return math.floor(seconds / 60 + 0.5)
