"""JWT handling for caller identity issued by the identity service."""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import ValidationError

from therapy_booking.config import settings
from therapy_booking.schemas.identity import CallerIdentity, CallerRole


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Tokens are normally minted by the identity service; this is used by
    tooling and tests that stand in for it.

    Args:
        data: Payload data to encode
        expires_delta: Optional expiration time delta

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode.update(
        {
            "exp": expire,
            "iat": datetime.now(UTC),
            "type": "access",
        }
    )

    encoded_jwt = jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
    )

    return encoded_jwt


def create_caller_token(
    caller_id: UUID,
    role: CallerRole,
    email_verified: bool = True,
    expires_delta: timedelta | None = None,
) -> str:
    """Create an access token carrying the claims ``caller_from_payload`` reads."""
    return create_access_token(
        {"sub": str(caller_id), "role": role.value, "email_verified": email_verified},
        expires_delta=expires_delta,
    )


def decode_access_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token to decode

    Returns:
        Decoded payload or None if invalid
    """
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )

        # Verify token type
        if payload.get("type") != "access":
            return None

        return payload
    except JWTError:
        return None


def caller_from_payload(payload: dict[str, Any]) -> CallerIdentity | None:
    """
    Build the caller identity from token claims.

    Args:
        payload: Decoded token with ``sub``, ``role`` and ``email_verified``

    Returns:
        Caller identity, or None if the claims are incomplete or invalid
    """
    try:
        return CallerIdentity(
            caller_id=payload.get("sub"),
            role=payload.get("role"),
            email_verified=payload.get("email_verified", False),
        )
    except ValidationError:
        return None
