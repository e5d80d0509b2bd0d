"""Provider directory table using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Numeric,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from therapy_booking.models.base import metadata

providers = Table(
    "providers",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    # Account of the provider in the identity service
    Column("user_id", UUID(as_uuid=True), nullable=False, unique=True, index=True),
    Column("display_name", Text, nullable=True),
    # Pricing
    Column("hourly_rate", Numeric(10, 2), nullable=False, server_default=text("0")),
    # Verification gates
    Column("license_verified", Boolean, nullable=False, server_default=text("false")),
    Column("background_check_passed", Boolean, nullable=False, server_default=text("false")),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint("hourly_rate >= 0", name="providers_hourly_rate_check"),
)
