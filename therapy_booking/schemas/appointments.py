"""Appointment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment lifecycle status."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class ServiceType(str, Enum):
    """Kind of session being booked."""

    SPEECH_THERAPY = "speech_therapy"
    OCCUPATIONAL_THERAPY = "occupational_therapy"
    PHYSICAL_THERAPY = "physical_therapy"
    LITERACY_SUPPORT = "literacy_support"
    GROUP_SESSION = "group_session"
    EVALUATION = "evaluation"


class PaymentStatus(str, Enum):
    """Payment tag mirrored from the payment ledger."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class AppointmentCreate(BaseModel):
    """Schema for a client booking request."""

    provider_id: UUID
    service_type: ServiceType
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    start_time: AwareDatetime
    end_time: AwareDatetime
    is_remote: bool = False
    location: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=2000)
    goals: str | None = Field(None, max_length=2000)
    materials: list[str] = Field(default_factory=list, max_length=50)


class AppointmentStatusUpdate(BaseModel):
    """Schema for a lifecycle transition request."""

    status: AppointmentStatus
    reason: str | None = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=1000)


class PaymentStatusUpdate(BaseModel):
    """Schema for recording the payment ledger's status."""

    payment_status: PaymentStatus


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    client_id: UUID
    provider_id: UUID
    service_type: ServiceType
    title: str
    description: str | None = None
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: AppointmentStatus
    is_remote: bool
    location: str | None = None
    notes: str | None = None
    goals: str | None = None
    materials: list[str] = []
    hourly_rate: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    reminder_sent_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: list[AppointmentStatus] | None = None
    service_type: list[ServiceType] | None = None
    provider_id: UUID | None = None
    client_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)
