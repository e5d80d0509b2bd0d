"""Appointment endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query, status

from therapy_booking.dependencies import AppointmentServiceDep, CurrentCaller
from therapy_booking.schemas.appointments import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PaymentStatusUpdate,
    ServiceType,
)

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Book a provider for the authenticated client.

    Args:
        data: Requested slot and session details
        caller: Authenticated caller
        service: Appointment service

    Returns:
        Created appointment
    """
    return await service.create_appointment(caller, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    service: AppointmentServiceDep,
    status_filter: list[AppointmentStatus] | None = Query(None, alias="status"),
    service_type: list[ServiceType] | None = Query(None),
    provider_id: UUID | None = Query(None),
    client_id: UUID | None = Query(None),
    from_date: datetime | None = Query(None),
    to_date: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """List appointments visible to the caller with filtering."""
    filters = AppointmentFilters(
        status=status_filter,
        service_type=service_type,
        provider_id=provider_id,
        client_id=client_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(caller, filters)


@router.get(
    "/upcoming",
    response_model=list[AppointmentResponse],
    status_code=status.HTTP_200_OK,
    summary="List upcoming appointments",
)
async def list_upcoming_appointments(
    caller: CurrentCaller,
    service: AppointmentServiceDep,
    limit: int = Query(5, ge=1, le=50),
) -> list[AppointmentResponse]:
    """Soonest scheduled or confirmed appointments of the caller."""
    return await service.list_upcoming(caller, limit=limit)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment",
)
async def get_appointment(
    appointment_id: UUID,
    caller: CurrentCaller,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Get one appointment the caller has rights over."""
    return await service.get_appointment(appointment_id, caller)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Change appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    caller: CurrentCaller,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Move an appointment to another lifecycle status.

    Args:
        appointment_id: Appointment ID
        data: Requested status and optional cancellation reason
        caller: Authenticated caller
        service: Appointment service

    Returns:
        Updated appointment
    """
    return await service.update_status(appointment_id, caller, data.status, reason=data.reason)


@router.patch(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    caller: CurrentCaller,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Cancel an appointment with an optional reason."""
    return await service.cancel_appointment(appointment_id, caller, reason=data.reason)


@router.patch(
    "/{appointment_id}/payment-status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Record payment status",
)
async def record_payment_status(
    appointment_id: UUID,
    data: PaymentStatusUpdate,
    caller: CurrentCaller,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Mirror the payment ledger's status onto an appointment (admin only)."""
    return await service.record_payment_status(appointment_id, caller, data.payment_status)
