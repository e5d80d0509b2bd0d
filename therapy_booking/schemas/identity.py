"""Caller identity supplied by the identity service."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class CallerRole(str, Enum):
    """Closed set of caller roles."""

    CLIENT = "client"
    PROVIDER = "provider"
    ADMIN = "admin"


class CallerIdentity(BaseModel):
    """Authenticated caller, passed explicitly into every service call."""

    caller_id: UUID
    role: CallerRole
    email_verified: bool = False

    model_config = {"frozen": True}
