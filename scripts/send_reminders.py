#!/usr/bin/env python3
"""
Enqueue reminder notifications for appointments starting soon.

Meant to run periodically (cron, scheduler). Each appointment is reminded at
most once.

Usage:
    python scripts/send_reminders.py
    python scripts/send_reminders.py --lead-hours 48
"""

import argparse
import asyncio
from datetime import timedelta

import structlog

from therapy_booking.config import settings
from therapy_booking.core.redis_client import close_redis_connection
from therapy_booking.database import AsyncSessionLocal, engine
from therapy_booking.middleware.logging import configure_logging
from therapy_booking.repositories.appointment_repository import AppointmentRepository
from therapy_booking.services.appointment_service import AppointmentService
from therapy_booking.services.notification_service import get_notification_service
from therapy_booking.services.provider_directory import ProviderDirectory

logger = structlog.get_logger()


async def send_reminders(lead_hours: int) -> int:
    """Claim due appointments and enqueue one reminder each."""
    notifier = get_notification_service()

    async with AsyncSessionLocal() as session:
        service = AppointmentService(
            repository=AppointmentRepository(session),
            providers=ProviderDirectory(session),
            notifier=notifier,
        )
        count = await service.enqueue_due_reminders(lead=timedelta(hours=lead_hours))

    await notifier.drain()
    await engine.dispose()
    await close_redis_connection()
    return count


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--lead-hours",
        type=int,
        default=settings.reminder_lead_hours,
        help="Remind appointments starting within this many hours",
    )
    args = parser.parse_args()

    configure_logging()
    count = asyncio.run(send_reminders(args.lead_hours))
    logger.info("reminder_run_finished", reminded=count)


if __name__ == "__main__":
    main()
