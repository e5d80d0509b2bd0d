"""Provider directory schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field


class ProviderProfile(BaseModel):
    """Eligibility attributes of a bookable provider."""

    provider_id: UUID
    user_id: UUID
    display_name: str | None = None
    hourly_rate: Decimal = Field(..., ge=0)
    license_verified: bool
    background_check_passed: bool

    model_config = {"from_attributes": True}

    @property
    def missing_verifications(self) -> list[str]:
        """Names of the checks this provider has not yet cleared."""
        missing = []
        if not self.license_verified:
            missing.append("license_verified")
        if not self.background_check_passed:
            missing.append("background_check_passed")
        return missing
