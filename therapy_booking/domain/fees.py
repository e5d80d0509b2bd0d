"""Session fee calculation."""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
MINUTES_PER_HOUR = 60


def calculate_total_amount(hourly_rate: Decimal, duration_minutes: int) -> Decimal:
    """
    Price a session from the provider's hourly rate.

    The amount is ``hourly_rate * duration_minutes / 60`` rounded half-up to
    whole cents. It is computed once when the appointment is created and
    stored alongside the rate it was computed from.

    Args:
        hourly_rate: Provider's rate at booking time
        duration_minutes: Length of the session in minutes

    Returns:
        Total amount with two decimal places

    Raises:
        ValueError: If rate or duration is negative
    """
    rate = Decimal(hourly_rate)
    if rate < 0:
        raise ValueError("hourly_rate must not be negative")
    if duration_minutes < 0:
        raise ValueError("duration_minutes must not be negative")

    amount = rate * duration_minutes / MINUTES_PER_HOUR
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
