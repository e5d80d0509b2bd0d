"""Outbound notification event schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from therapy_booking.schemas.appointments import AppointmentStatus, ServiceType


class NotificationEventType(str, Enum):
    """Events the dispatcher knows how to deliver."""

    APPOINTMENT_CONFIRMED = "AppointmentConfirmed"
    APPOINTMENT_CANCELLED = "AppointmentCancelled"
    APPOINTMENT_REMINDER = "AppointmentReminder"


class AppointmentSummary(BaseModel):
    """Appointment details included in a notification."""

    appointment_id: UUID
    service_type: ServiceType
    title: str
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    client_id: UUID
    provider_id: UUID
    status: AppointmentStatus
    is_remote: bool = False
    location: str | None = None
    cancellation_reason: str | None = None


class NotificationEvent(BaseModel):
    """Delivery request handed to the notification dispatcher."""

    event_type: NotificationEventType
    recipient_ids: list[UUID] = Field(..., min_length=1)
    appointment_summary: AppointmentSummary
