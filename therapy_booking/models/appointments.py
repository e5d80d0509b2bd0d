"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    Numeric,
    Table,
    Text,
    func,
    literal_column,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY, TIMESTAMP, UUID, ExcludeConstraint

from therapy_booking.models.base import metadata

NO_OVERLAP_CONSTRAINT = "appointments_no_provider_overlap"

appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references (immutable)
    Column("client_id", UUID(as_uuid=True), nullable=False),
    Column("provider_id", UUID(as_uuid=True), nullable=False),
    # Session details
    Column("service_type", Text, nullable=False),
    Column("title", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("start_time", TIMESTAMP(timezone=True), nullable=False),
    Column("end_time", TIMESTAMP(timezone=True), nullable=False),
    Column("duration_minutes", Integer, nullable=False),
    Column("is_remote", Boolean, nullable=False, server_default=text("false")),
    Column("location", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("goals", Text, nullable=True),
    Column("materials", ARRAY(Text), nullable=False, server_default=text("'{}'")),
    # Status management
    Column("status", Text, nullable=False, server_default="scheduled"),
    # Money snapshot taken at booking time
    Column("hourly_rate", Numeric(10, 2), nullable=False),
    Column("total_amount", Numeric(10, 2), nullable=False),
    Column("payment_status", Text, nullable=False, server_default="pending"),
    # Cancellation
    Column("cancelled_at", TIMESTAMP(timezone=True), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    Column("reminder_sent_at", TIMESTAMP(timezone=True), nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint("end_time > start_time", name="appointments_time_order_check"),
    CheckConstraint(
        "duration_minutes = ROUND(EXTRACT(EPOCH FROM (end_time - start_time)) / 60)",
        name="appointments_duration_check",
    ),
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "service_type IN ('speech_therapy', 'occupational_therapy', 'physical_therapy', "
        "'literacy_support', 'group_session', 'evaluation')",
        name="appointments_service_type_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'completed', 'failed', 'refunded')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint(
        "hourly_rate >= 0 AND total_amount >= 0",
        name="appointments_amount_check",
    ),
    CheckConstraint(
        "(status = 'cancelled') = (cancelled_at IS NOT NULL)",
        name="appointments_cancelled_at_check",
    ),
)

Index("ix_appointments_client_id", appointments.c.client_id)
Index("ix_appointments_provider_start", appointments.c.provider_id, appointments.c.start_time)
Index("ix_appointments_status", appointments.c.status)

# Storage-level guard against double booking; needs the btree_gist extension.
appointments.append_constraint(
    ExcludeConstraint(
        (appointments.c.provider_id, "="),
        (
            func.tstzrange(
                appointments.c.start_time,
                appointments.c.end_time,
                literal_column("'[)'"),
            ),
            "&&",
        ),
        name=NO_OVERLAP_CONSTRAINT,
        using="gist",
        where=text("status IN ('scheduled', 'confirmed', 'in_progress')"),
    )
)
