"""Capability checks for appointment operations."""

from uuid import UUID

from therapy_booking.schemas.identity import CallerIdentity, CallerRole


def can_manage_appointment(
    caller: CallerIdentity,
    client_id: UUID,
    provider_id: UUID,
    caller_provider_id: UUID | None = None,
) -> bool:
    """
    Decide whether a caller may read or change an appointment.

    Admins always may. Otherwise the caller must be the booking client or
    the user behind the booked provider.

    Args:
        caller: Authenticated caller
        client_id: Appointment's client
        provider_id: Appointment's provider
        caller_provider_id: Provider record the caller resolves to, if any
    """
    if caller.role is CallerRole.ADMIN:
        return True
    if caller.caller_id == client_id:
        return True
    return caller_provider_id is not None and caller_provider_id == provider_id


def can_record_payment_status(caller: CallerIdentity) -> bool:
    """Only admins mirror the payment ledger onto appointments."""
    return caller.role is CallerRole.ADMIN


def can_book(caller: CallerIdentity) -> bool:
    """Booking requires a verified email address."""
    return caller.email_verified
