"""SQL access for appointments."""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, insert, select, text, true, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_booking.domain.lifecycle import NON_TERMINAL_STATUSES
from therapy_booking.models.appointments import NO_OVERLAP_CONSTRAINT, appointments
from therapy_booking.schemas.appointments import AppointmentFilters, AppointmentStatus

EXCLUSION_VIOLATION_SQLSTATE = "23P01"

_ACTIVE_STATUS_VALUES = sorted(status.value for status in NON_TERMINAL_STATUSES)
_UPCOMING_STATUS_VALUES = [AppointmentStatus.SCHEDULED.value, AppointmentStatus.CONFIRMED.value]


def is_overlap_violation(exc: IntegrityError) -> bool:
    """Check whether an IntegrityError came from the provider no-overlap constraint."""
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == EXCLUSION_VIOLATION_SQLSTATE:
        return True
    return NO_OVERLAP_CONSTRAINT in str(orig if orig is not None else exc)


class AppointmentRepository:
    """
    Appointment persistence over an async session.

    Methods never commit on their own; the caller decides the transaction
    boundary with ``commit``/``rollback``.
    """

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    async def get(self, appointment_id: UUID) -> dict[str, Any] | None:
        """Fetch one appointment row."""
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def lock_provider_schedule(self, provider_id: UUID) -> None:
        """
        Serialize bookings for one provider until the transaction ends.

        Uses a transaction-scoped advisory lock, so concurrent creates for the
        same provider run their conflict scan one after another.
        """
        await self.db.execute(
            text("SELECT pg_advisory_xact_lock(hashtextextended(:lock_key, 0))"),
            {"lock_key": f"provider-schedule:{provider_id}"},
        )

    async def list_active_overlapping(
        self,
        provider_id: UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> list[dict[str, Any]]:
        """Non-terminal appointments of the provider intersecting ``[start_time, end_time)``."""
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.provider_id == provider_id,
                    appointments.c.status.in_(_ACTIVE_STATUS_VALUES),
                    appointments.c.start_time < end_time,
                    appointments.c.end_time > start_time,
                )
            )
            .order_by(appointments.c.start_time)
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]

    async def insert(self, values: dict[str, Any]) -> dict[str, Any]:
        stmt = insert(appointments).values(**values).returning(appointments)
        result = await self.db.execute(stmt)
        return dict(result.fetchone()._mapping)

    async def update_status(
        self,
        appointment_id: UUID,
        expected_status: AppointmentStatus,
        values: dict[str, Any],
    ) -> dict[str, Any] | None:
        """
        Apply a status change only if the stored status is still ``expected_status``.

        Returns:
            The updated row, or None if the status moved in the meantime
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status == expected_status.value,
                )
            )
            .values(**values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def update_payment_status(
        self,
        appointment_id: UUID,
        payment_status: str,
        updated_at: datetime,
    ) -> dict[str, Any] | None:
        stmt = (
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(payment_status=payment_status, updated_at=updated_at)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return dict(row._mapping) if row else None

    async def list_appointments(
        self,
        filters: AppointmentFilters,
        client_id: UUID | None = None,
        provider_id: UUID | None = None,
    ) -> tuple[int, list[dict[str, Any]]]:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters
            client_id: Restrict to this client
            provider_id: Restrict to this provider

        Returns:
            Total count and the requested page of rows
        """
        conditions = []

        if client_id is not None:
            conditions.append(appointments.c.client_id == client_id)

        if provider_id is not None:
            conditions.append(appointments.c.provider_id == provider_id)

        if filters.status:
            conditions.append(appointments.c.status.in_([s.value for s in filters.status]))

        if filters.service_type:
            conditions.append(
                appointments.c.service_type.in_([s.value for s in filters.service_type])
            )

        if filters.from_date:
            conditions.append(appointments.c.start_time >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.start_time <= filters.to_date)

        where_clause = and_(true(), *conditions)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(where_clause)
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(where_clause)
            .order_by(appointments.c.start_time.desc())
            .limit(filters.page_size)
            .offset(offset)
        )

        result = await self.db.execute(stmt)
        return total, [dict(row._mapping) for row in result.fetchall()]

    async def list_upcoming(
        self,
        now: datetime,
        limit: int,
        client_id: UUID | None = None,
        provider_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        conditions = [
            appointments.c.start_time >= now,
            appointments.c.status.in_(_UPCOMING_STATUS_VALUES),
        ]
        if client_id is not None:
            conditions.append(appointments.c.client_id == client_id)
        if provider_id is not None:
            conditions.append(appointments.c.provider_id == provider_id)

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(appointments.c.start_time.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]

    async def claim_due_reminders(
        self,
        now: datetime,
        until: datetime,
    ) -> list[dict[str, Any]]:
        """
        Mark appointments starting in ``(now, until]`` as reminded and return them.

        A row is claimed at most once because the update only matches rows
        with no ``reminder_sent_at``.
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.status.in_(_UPCOMING_STATUS_VALUES),
                    appointments.c.start_time > now,
                    appointments.c.start_time <= until,
                    appointments.c.reminder_sent_at.is_(None),
                )
            )
            .values(reminder_sent_at=now)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        return [dict(row._mapping) for row in result.fetchall()]
