"""Read access to the provider directory."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_booking.models.providers import providers
from therapy_booking.schemas.providers import ProviderProfile


class ProviderDirectory:
    """Looks up provider eligibility and the provider behind a user account."""

    def __init__(self, db: AsyncSession):
        """Initialize directory with database session."""
        self.db = db

    async def get_provider(self, provider_id: UUID) -> ProviderProfile | None:
        """
        Read a provider's current rate and verification state.

        Args:
            provider_id: Provider ID

        Returns:
            Provider profile, or None if unknown
        """
        stmt = select(
            providers.c.id.label("provider_id"),
            providers.c.user_id,
            providers.c.display_name,
            providers.c.hourly_rate,
            providers.c.license_verified,
            providers.c.background_check_passed,
        ).where(providers.c.id == provider_id)

        result = await self.db.execute(stmt)
        row = result.fetchone()
        if not row:
            return None
        return ProviderProfile.model_validate(dict(row._mapping))

    async def get_provider_id_for_user(self, user_id: UUID) -> UUID | None:
        """Resolve the provider record owned by a user account."""
        stmt = select(providers.c.id).where(providers.c.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()
