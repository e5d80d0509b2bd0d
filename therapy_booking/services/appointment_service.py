"""Appointment service for booking and lifecycle business logic."""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar
from uuid import UUID, uuid4

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from therapy_booking.config import settings
from therapy_booking.core.exceptions import (
    ForbiddenException,
    IllegalStatusTransitionError,
    NotFoundException,
    ProviderNotEligibleError,
    SchedulingConflictError,
    TransientPersistenceError,
)
from therapy_booking.domain import (
    INITIAL_STATUS,
    BookedInterval,
    calculate_total_amount,
    can_book,
    can_manage_appointment,
    can_record_payment_status,
    duration_minutes,
    ensure_no_conflict,
    find_conflict,
    transition_values,
    validate_slot,
)
from therapy_booking.repositories.appointment_repository import (
    AppointmentRepository,
    is_overlap_violation,
)
from therapy_booking.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    PaymentStatus,
)
from therapy_booking.schemas.identity import CallerIdentity, CallerRole
from therapy_booking.schemas.notifications import (
    AppointmentSummary,
    NotificationEvent,
    NotificationEventType,
)
from therapy_booking.schemas.providers import ProviderProfile
from therapy_booking.services.notification_service import NotificationService
from therapy_booking.services.provider_directory import ProviderDirectory

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Errors after which a read may be repeated once
RETRYABLE_READ_ERRORS = (OperationalError, InterfaceError)


def utcnow() -> datetime:
    return datetime.now(UTC)


class AppointmentService:
    """
    The only component that creates or changes appointments.

    Combines the slot rules, conflict detection, fee calculation and the
    lifecycle state machine with provider eligibility, persistence and
    notifications. Caller identity is always passed in explicitly.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        providers: ProviderDirectory,
        notifier: NotificationService,
        clock: Callable[[], datetime] = utcnow,
        booking_horizon: timedelta = timedelta(days=settings.booking_horizon_days),
    ):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.providers = providers
        self.notifier = notifier
        self.clock = clock
        self.booking_horizon = booking_horizon

    async def create_appointment(
        self,
        caller: CallerIdentity,
        data: AppointmentCreate,
    ) -> AppointmentResponse:
        """
        Book a provider for the calling client.

        Args:
            caller: Client making the booking
            data: Requested slot and session details

        Returns:
            Created appointment in SCHEDULED status

        Raises:
            ForbiddenException: If the caller's email is not verified
            NotFoundException: If the provider does not exist
            ProviderNotEligibleError: If the provider is not fully verified
            SlotRejectedError: If the slot is outside the booking window
            SchedulingConflictError: If the provider is already booked
            TransientPersistenceError: If the booking could not be stored
        """
        if not can_book(caller):
            raise ForbiddenException(
                "Email verification required to book appointments",
                code="EmailNotVerified",
            )

        provider = await self._read(self.providers.get_provider, data.provider_id)
        if provider is None:
            raise NotFoundException("Provider not found", code="ProviderNotFound")

        if provider.missing_verifications:
            logger.info(
                "booking_rejected_provider_not_eligible",
                provider_id=str(provider.provider_id),
                missing=provider.missing_verifications,
            )
            raise ProviderNotEligibleError(provider.provider_id, provider.missing_verifications)

        now = self.clock()
        validate_slot(data.start_time, data.end_time, now, self.booking_horizon)

        values = {
            "id": uuid4(),
            "client_id": caller.caller_id,
            "provider_id": provider.provider_id,
            "service_type": data.service_type.value,
            "title": data.title,
            "description": data.description,
            "start_time": data.start_time,
            "end_time": data.end_time,
            "duration_minutes": duration_minutes(data.start_time, data.end_time),
            "is_remote": data.is_remote,
            "location": data.location,
            "notes": data.notes,
            "goals": data.goals,
            "materials": data.materials,
            "status": INITIAL_STATUS.value,
            "payment_status": PaymentStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }

        row = await self._insert_without_overlap(provider, values)
        appointment = AppointmentResponse.model_validate(row)

        logger.info(
            "appointment_created",
            appointment_id=str(appointment.id),
            provider_id=str(appointment.provider_id),
            client_id=str(appointment.client_id),
            total_amount=str(appointment.total_amount),
        )

        self._notify(
            NotificationEventType.APPOINTMENT_CONFIRMED,
            appointment,
            [appointment.client_id, provider.user_id],
        )

        return appointment

    async def _insert_without_overlap(
        self,
        provider: ProviderProfile,
        values: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Run conflict detection, pricing and the insert as one transaction.

        The provider's schedule is locked first so a concurrent booking for
        the same provider waits for this one to commit or roll back. The
        exclusion constraint on the table is the last line of defence and is
        reported as a scheduling conflict too.
        """
        provider_id = provider.provider_id
        start_time = values["start_time"]
        end_time = values["end_time"]

        try:
            await self.repository.lock_provider_schedule(provider_id)
            existing = await self.repository.list_active_overlapping(
                provider_id, start_time, end_time
            )
            ensure_no_conflict(
                provider_id,
                start_time,
                end_time,
                [BookedInterval.from_row(row) for row in existing],
            )

            values["hourly_rate"] = provider.hourly_rate
            values["total_amount"] = calculate_total_amount(
                provider.hourly_rate, values["duration_minutes"]
            )

            row = await self.repository.insert(values)
            await self.repository.commit()
        except SchedulingConflictError as e:
            await self.repository.rollback()
            logger.info(
                "booking_rejected_conflict",
                provider_id=str(provider_id),
                conflicting_appointment_id=str(e.conflicting_appointment_id),
            )
            raise
        except IntegrityError as e:
            await self.repository.rollback()
            if is_overlap_violation(e):
                conflicting_id = await self._find_conflicting_id(provider_id, start_time, end_time)
                logger.info(
                    "booking_rejected_constraint_conflict",
                    provider_id=str(provider_id),
                    conflicting_appointment_id=str(conflicting_id),
                )
                raise SchedulingConflictError(conflicting_id) from e
            logger.error("appointment_insert_failed", provider_id=str(provider_id), error=str(e))
            raise TransientPersistenceError() from e
        except DBAPIError as e:
            await self.repository.rollback()
            logger.error("appointment_insert_failed", provider_id=str(provider_id), error=str(e))
            raise TransientPersistenceError() from e

        return row

    async def _find_conflicting_id(
        self,
        provider_id: UUID,
        start_time: datetime,
        end_time: datetime,
    ) -> UUID | None:
        rows = await self._read(
            self.repository.list_active_overlapping, provider_id, start_time, end_time
        )
        conflict = find_conflict(
            provider_id, start_time, end_time, [BookedInterval.from_row(row) for row in rows]
        )
        return conflict.appointment_id if conflict else None

    async def get_appointment(
        self,
        appointment_id: UUID,
        caller: CallerIdentity,
    ) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller has no rights over it
        """
        row = await self._get_authorized(appointment_id, caller)
        return AppointmentResponse.model_validate(row)

    async def update_status(
        self,
        appointment_id: UUID,
        caller: CallerIdentity,
        requested_status: AppointmentStatus,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment through its lifecycle.

        Args:
            appointment_id: Appointment ID
            caller: Client, provider or admin requesting the change
            requested_status: Target status
            reason: Cancellation reason, only stored for CANCELLED

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller has no rights over it
            IllegalStatusTransitionError: If the transition is not permitted
            TransientPersistenceError: If the change could not be stored
        """
        row = await self._get_authorized(appointment_id, caller)
        current_status = AppointmentStatus(row["status"])

        now = self.clock()
        values = transition_values(current_status, requested_status, now, reason)
        values["updated_at"] = now

        try:
            updated = await self.repository.update_status(appointment_id, current_status, values)
            if updated is not None:
                await self.repository.commit()
        except DBAPIError as e:
            await self.repository.rollback()
            logger.error(
                "appointment_status_update_failed",
                appointment_id=str(appointment_id),
                error=str(e),
            )
            raise TransientPersistenceError() from e

        if updated is None:
            # Another request changed the status first; judge against what it wrote.
            await self.repository.rollback()
            latest = await self._read(self.repository.get, appointment_id)
            found = AppointmentStatus(latest["status"]) if latest else current_status
            raise IllegalStatusTransitionError(found.value, requested_status.value)

        appointment = AppointmentResponse.model_validate(updated)

        logger.info(
            "appointment_status_updated",
            appointment_id=str(appointment_id),
            from_status=current_status.value,
            to_status=requested_status.value,
            caller_role=caller.role.value,
        )

        if requested_status is AppointmentStatus.CANCELLED:
            await self._notify_parties(NotificationEventType.APPOINTMENT_CANCELLED, appointment)

        return appointment

    async def cancel_appointment(
        self,
        appointment_id: UUID,
        caller: CallerIdentity,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """Shorthand for a transition into CANCELLED."""
        return await self.update_status(
            appointment_id, caller, AppointmentStatus.CANCELLED, reason=reason
        )

    async def record_payment_status(
        self,
        appointment_id: UUID,
        caller: CallerIdentity,
        payment_status: PaymentStatus,
    ) -> AppointmentResponse:
        """
        Mirror the payment ledger's status onto an appointment.

        Only the payment tag changes; lifecycle status and amounts are left
        untouched.
        """
        if not can_record_payment_status(caller):
            raise ForbiddenException("Only admins can record payment status")

        try:
            row = await self.repository.update_payment_status(
                appointment_id, payment_status.value, self.clock()
            )
            if row is not None:
                await self.repository.commit()
        except DBAPIError as e:
            await self.repository.rollback()
            logger.error(
                "payment_status_update_failed",
                appointment_id=str(appointment_id),
                error=str(e),
            )
            raise TransientPersistenceError() from e

        if row is None:
            raise NotFoundException("Appointment not found")

        logger.info(
            "appointment_payment_status_recorded",
            appointment_id=str(appointment_id),
            payment_status=payment_status.value,
        )
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        caller: CallerIdentity,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the caller.

        Admins see everything and may filter by client or provider. Providers
        see bookings of their own provider record; clients see their own.
        """
        client_id, provider_id, visible = await self._visibility_scope(caller)
        if caller.role is CallerRole.ADMIN:
            client_id = filters.client_id
            provider_id = filters.provider_id

        if not visible:
            return AppointmentListResponse(
                total=0, page=filters.page, page_size=filters.page_size, items=[]
            )

        total, rows = await self._read(
            self.repository.list_appointments,
            filters,
            client_id=client_id,
            provider_id=provider_id,
        )

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(row) for row in rows],
        )

    async def list_upcoming(
        self,
        caller: CallerIdentity,
        limit: int = 5,
    ) -> list[AppointmentResponse]:
        """Soonest SCHEDULED or CONFIRMED appointments visible to the caller."""
        client_id, provider_id, visible = await self._visibility_scope(caller)
        if not visible:
            return []

        rows = await self._read(
            self.repository.list_upcoming,
            self.clock(),
            limit,
            client_id=client_id,
            provider_id=provider_id,
        )
        return [AppointmentResponse.model_validate(row) for row in rows]

    async def enqueue_due_reminders(self, lead: timedelta | None = None) -> int:
        """
        Send one reminder for each appointment starting within ``lead``.

        Returns:
            Number of appointments reminded
        """
        if lead is None:
            lead = timedelta(hours=settings.reminder_lead_hours)
        now = self.clock()

        try:
            rows = await self.repository.claim_due_reminders(now, now + lead)
            await self.repository.commit()
        except DBAPIError as e:
            await self.repository.rollback()
            logger.error("reminder_claim_failed", error=str(e))
            raise TransientPersistenceError() from e

        for row in rows:
            await self._notify_parties(
                NotificationEventType.APPOINTMENT_REMINDER,
                AppointmentResponse.model_validate(row),
            )

        logger.info("reminders_enqueued", count=len(rows))
        return len(rows)

    async def _get_authorized(
        self,
        appointment_id: UUID,
        caller: CallerIdentity,
    ) -> dict[str, Any]:
        row = await self._read(self.repository.get, appointment_id)
        if row is None:
            raise NotFoundException("Appointment not found")

        caller_provider_id = None
        if caller.role is CallerRole.PROVIDER:
            caller_provider_id = await self._read(
                self.providers.get_provider_id_for_user, caller.caller_id
            )

        if not can_manage_appointment(
            caller, row["client_id"], row["provider_id"], caller_provider_id
        ):
            raise ForbiddenException("Access denied to this appointment")

        return row

    async def _visibility_scope(
        self,
        caller: CallerIdentity,
    ) -> tuple[UUID | None, UUID | None, bool]:
        """Return (client_id, provider_id, visible) restrictions for listings."""
        if caller.role is CallerRole.ADMIN:
            return None, None, True

        if caller.role is CallerRole.PROVIDER:
            provider_id = await self._read(
                self.providers.get_provider_id_for_user, caller.caller_id
            )
            return None, provider_id, provider_id is not None

        return caller.caller_id, None, True

    async def _read(self, operation: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run an idempotent read, retrying once after a connection-level failure."""
        try:
            return await operation(*args, **kwargs)
        except RETRYABLE_READ_ERRORS as e:
            logger.warning(
                "persistence_read_retry",
                operation=getattr(operation, "__name__", repr(operation)),
                error=str(e),
            )
            await self.repository.rollback()

        try:
            return await operation(*args, **kwargs)
        except RETRYABLE_READ_ERRORS as e:
            logger.error(
                "persistence_read_failed",
                operation=getattr(operation, "__name__", repr(operation)),
                error=str(e),
            )
            raise TransientPersistenceError() from e

    async def _notify_parties(
        self,
        event_type: NotificationEventType,
        appointment: AppointmentResponse,
    ) -> None:
        """Notify the client and the provider's user account."""
        recipients = [appointment.client_id]
        try:
            provider = await self.providers.get_provider(appointment.provider_id)
        except Exception as e:
            logger.warning(
                "notification_recipient_lookup_failed",
                appointment_id=str(appointment.id),
                error=str(e),
            )
            provider = None
        if provider is not None:
            recipients.append(provider.user_id)

        self._notify(event_type, appointment, recipients)

    def _notify(
        self,
        event_type: NotificationEventType,
        appointment: AppointmentResponse,
        recipient_ids: list[UUID],
    ) -> None:
        """Hand an event to the notifier; failures never reach the caller."""
        try:
            event = NotificationEvent(
                event_type=event_type,
                recipient_ids=list(dict.fromkeys(recipient_ids)),
                appointment_summary=AppointmentSummary(
                    appointment_id=appointment.id,
                    service_type=appointment.service_type,
                    title=appointment.title,
                    start_time=appointment.start_time,
                    end_time=appointment.end_time,
                    duration_minutes=appointment.duration_minutes,
                    client_id=appointment.client_id,
                    provider_id=appointment.provider_id,
                    status=appointment.status,
                    is_remote=appointment.is_remote,
                    location=appointment.location,
                    cancellation_reason=appointment.cancellation_reason,
                ),
            )
            self.notifier.enqueue(event)
        except Exception as e:
            # Log error but don't fail the request
            logger.warning(
                "failed_to_enqueue_notification",
                event_type=event_type.value,
                appointment_id=str(appointment.id),
                error=str(e),
            )
