"""Database models."""

from therapy_booking.models.appointments import appointments
from therapy_booking.models.base import metadata
from therapy_booking.models.providers import providers

__all__ = [
    "appointments",
    "metadata",
    "providers",
]
