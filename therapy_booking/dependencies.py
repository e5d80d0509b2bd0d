"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_booking.core.security import caller_from_payload, decode_access_token
from therapy_booking.database import get_db
from therapy_booking.repositories.appointment_repository import AppointmentRepository
from therapy_booking.schemas.identity import CallerIdentity
from therapy_booking.services.appointment_service import AppointmentService
from therapy_booking.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from therapy_booking.services.provider_directory import ProviderDirectory

# Security
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_caller(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> CallerIdentity:
    """
    Extract the caller identity from the bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller identity with id, role and email verification state

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Could not validate credentials")

    caller = caller_from_payload(payload)
    if caller is None:
        raise _unauthorized("Invalid caller claims")

    return caller


def get_appointment_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> AppointmentService:
    """Build the appointment service for one request."""
    return AppointmentService(
        repository=AppointmentRepository(db),
        providers=ProviderDirectory(db),
        notifier=notifier,
    )


# Type aliases for dependency injection
CurrentCaller = Annotated[CallerIdentity, Depends(get_current_caller)]
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
