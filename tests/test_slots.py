"""Tests for booking window validation."""

from datetime import UTC, datetime, timedelta

import pytest

from therapy_booking.core.exceptions import (
    BookingTooFarOutError,
    InvalidIntervalError,
    PastBookingError,
    SlotRejectedError,
)
from therapy_booking.domain.slots import duration_minutes, validate_slot

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
HORIZON = timedelta(days=90)


def test_accepts_slot_starting_tomorrow() -> None:
    """Test a normal slot inside the window."""
    start = NOW + timedelta(days=1)
    validate_slot(start, start + timedelta(hours=1), NOW, HORIZON)


def test_rejects_end_equal_to_start() -> None:
    """Test that a zero-length slot is rejected."""
    start = NOW + timedelta(days=1)
    with pytest.raises(InvalidIntervalError):
        validate_slot(start, start, NOW, HORIZON)


def test_rejects_end_before_start() -> None:
    """Test that a reversed slot is rejected."""
    start = NOW + timedelta(days=1)
    with pytest.raises(InvalidIntervalError):
        validate_slot(start, start - timedelta(minutes=30), NOW, HORIZON)


def test_rejects_start_in_the_past() -> None:
    """Test that a slot starting a minute ago is rejected."""
    start = NOW - timedelta(minutes=1)
    with pytest.raises(PastBookingError):
        validate_slot(start, start + timedelta(hours=1), NOW, HORIZON)


def test_start_exactly_now_is_allowed() -> None:
    """Test the lower boundary of the window."""
    validate_slot(NOW, NOW + timedelta(minutes=45), NOW, HORIZON)


def test_start_exactly_at_horizon_is_allowed() -> None:
    """Test the upper boundary of the window."""
    start = NOW + HORIZON
    validate_slot(start, start + timedelta(hours=1), NOW, HORIZON)


def test_rejects_start_beyond_horizon() -> None:
    """Test that a slot one second past the horizon is rejected."""
    start = NOW + HORIZON + timedelta(seconds=1)
    with pytest.raises(BookingTooFarOutError) as exc_info:
        validate_slot(start, start + timedelta(hours=1), NOW, HORIZON)

    assert exc_info.value.details == {"horizon_days": 90}
    assert exc_info.value.status_code == 400


def test_interval_rule_wins_over_past_rule() -> None:
    """Test that the first violated rule is the one reported."""
    start = NOW - timedelta(days=1)
    with pytest.raises(InvalidIntervalError):
        validate_slot(start, start - timedelta(hours=1), NOW, HORIZON)


def test_slot_errors_share_a_base_class() -> None:
    """Test that every slot error is a SlotRejectedError with status 400."""
    for error in (InvalidIntervalError(), PastBookingError(), BookingTooFarOutError(90)):
        assert isinstance(error, SlotRejectedError)
        assert error.status_code == 400


@pytest.mark.parametrize(
    ("length", "expected"),
    [
        (timedelta(hours=1), 60),
        (timedelta(minutes=45), 45),
        (timedelta(minutes=50, seconds=29), 50),
        (timedelta(minutes=50, seconds=30), 51),
        (timedelta(hours=2, minutes=15), 135),
    ],
)
def test_duration_minutes_rounds_half_up(length: timedelta, expected: int) -> None:
    """Test duration rounding to whole minutes."""
    start = NOW + timedelta(days=1)
    assert duration_minutes(start, start + length) == expected
