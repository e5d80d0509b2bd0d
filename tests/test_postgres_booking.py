"""Booking tests against a real PostgreSQL database.

Run with ``TEST_DATABASE_URL=postgresql://... pytest -m postgres``.
"""

import asyncio
import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import insert, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from therapy_booking.core.exceptions import SchedulingConflictError
from therapy_booking.database import to_async_url
from therapy_booking.models import metadata, providers
from therapy_booking.repositories.appointment_repository import (
    AppointmentRepository,
    is_overlap_violation,
)
from therapy_booking.schemas.appointments import (
    AppointmentCreate,
    AppointmentResponse,
    AppointmentStatus,
    ServiceType,
)
from therapy_booking.schemas.identity import CallerIdentity, CallerRole
from therapy_booking.services.appointment_service import AppointmentService
from therapy_booking.services.provider_directory import ProviderDirectory

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = [
    pytest.mark.postgres,
    pytest.mark.skipif(not TEST_DATABASE_URL, reason="TEST_DATABASE_URL not set"),
]

TOMORROW = (datetime.now(UTC) + timedelta(days=1)).replace(
    hour=10, minute=0, second=0, microsecond=0
)


@pytest_asyncio.fixture
async def sessions() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh schema and a session factory for one test."""
    engine = create_async_engine(to_async_url(TEST_DATABASE_URL), poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def provider_id(sessions):
    """A verified provider charging 120 per hour."""
    async with sessions() as session:
        result = await session.execute(
            insert(providers)
            .values(
                user_id=uuid4(),
                display_name="Dr. Jordan Lee",
                hourly_rate=Decimal("120.00"),
                license_verified=True,
                background_check_passed=True,
            )
            .returning(providers.c.id)
        )
        provider_id = result.scalar_one()
        await session.commit()
    return provider_id


def make_service(session: AsyncSession) -> AppointmentService:
    return AppointmentService(
        repository=AppointmentRepository(session),
        providers=ProviderDirectory(session),
        notifier=MagicMock(),
    )


def make_client() -> CallerIdentity:
    return CallerIdentity(caller_id=uuid4(), role=CallerRole.CLIENT, email_verified=True)


def make_booking(provider_id, start_offset: timedelta, length: timedelta) -> AppointmentCreate:
    start = TOMORROW + start_offset
    return AppointmentCreate(
        provider_id=provider_id,
        service_type=ServiceType.OCCUPATIONAL_THERAPY,
        title="Fine motor skills",
        start_time=start,
        end_time=start + length,
    )


@pytest.mark.asyncio
async def test_create_and_read_back(sessions, provider_id) -> None:
    """Test a booking round trip through the SQL repository."""
    client = make_client()
    async with sessions() as session:
        created = await make_service(session).create_appointment(
            client, make_booking(provider_id, timedelta(0), timedelta(minutes=90))
        )

    async with sessions() as session:
        fetched = await make_service(session).get_appointment(created.id, client)

    assert fetched.status is AppointmentStatus.SCHEDULED
    assert fetched.duration_minutes == 90
    assert fetched.total_amount == Decimal("180.00")


@pytest.mark.asyncio
async def test_concurrent_overlapping_creates(sessions, provider_id) -> None:
    """Test that two sessions racing for the same slot produce one booking."""
    async with sessions() as first, sessions() as second:
        results = await asyncio.gather(
            make_service(first).create_appointment(
                make_client(), make_booking(provider_id, timedelta(0), timedelta(hours=1))
            ),
            make_service(second).create_appointment(
                make_client(),
                make_booking(provider_id, timedelta(minutes=30), timedelta(hours=1)),
            ),
            return_exceptions=True,
        )

    created = [r for r in results if isinstance(r, AppointmentResponse)]
    conflicts = [r for r in results if isinstance(r, SchedulingConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 1

    async with sessions() as session:
        count = await session.execute(text("SELECT count(*) FROM appointments"))
        assert count.scalar_one() == 1


@pytest.mark.asyncio
async def test_exclusion_constraint_rejects_overlap(sessions, provider_id) -> None:
    """Test that the database refuses overlapping active rows on its own."""
    start = TOMORROW

    def row(status: str, offset: timedelta) -> dict:
        return {
            "id": uuid4(),
            "client_id": uuid4(),
            "provider_id": provider_id,
            "service_type": "evaluation",
            "title": "Evaluation",
            "start_time": start + offset,
            "end_time": start + offset + timedelta(hours=1),
            "duration_minutes": 60,
            "status": status,
            "hourly_rate": Decimal("120.00"),
            "total_amount": Decimal("120.00"),
            "cancelled_at": datetime.now(UTC) if status == "cancelled" else None,
        }

    async with sessions() as session:
        repository = AppointmentRepository(session)
        await repository.insert(row("confirmed", timedelta(0)))
        # Terminal rows and back-to-back rows are allowed
        await repository.insert(row("cancelled", timedelta(minutes=30)))
        await repository.insert(row("scheduled", timedelta(hours=1)))
        await repository.commit()

        with pytest.raises(IntegrityError) as exc_info:
            await repository.insert(row("scheduled", timedelta(minutes=30)))
        await repository.rollback()

    assert is_overlap_violation(exc_info.value)
