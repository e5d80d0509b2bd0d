"""Script to initialize the database without running migrations."""

import asyncio

from sqlalchemy import text

from therapy_booking.database import engine
from therapy_booking.models import metadata


async def init_db() -> None:
    """Create extensions and all tables, including the no-overlap constraint."""
    async with engine.begin() as conn:
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
        await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "btree_gist"'))

        await conn.run_sync(metadata.create_all)

        print("✓ Database initialized successfully!")

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
