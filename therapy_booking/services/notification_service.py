"""Outbound notification queue for the notification dispatcher."""

import asyncio

import structlog
from redis.asyncio import Redis

from therapy_booking.config import settings
from therapy_booking.core.redis_client import get_redis_client
from therapy_booking.schemas.notifications import NotificationEvent

logger = structlog.get_logger(__name__)


class NotificationService:
    """
    Hands notification events to the dispatcher through a Redis list.

    ``enqueue`` returns immediately; the push runs as a background task with
    a timeout, and any failure is logged and dropped (at-most-once).
    """

    def __init__(
        self,
        redis_client: Redis,
        queue_key: str = settings.notification_queue_key,
        publish_timeout: float = settings.notification_publish_timeout_seconds,
    ):
        """Initialize service with a Redis client."""
        self.redis = redis_client
        self.queue_key = queue_key
        self.publish_timeout = publish_timeout
        self._pending: set[asyncio.Task] = set()

    def enqueue(self, event: NotificationEvent) -> None:
        """
        Schedule delivery of an event without waiting for it.

        Args:
            event: Notification to deliver
        """
        task = asyncio.create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _publish(self, event: NotificationEvent) -> None:
        appointment_id = str(event.appointment_summary.appointment_id)
        try:
            await asyncio.wait_for(
                self.redis.lpush(self.queue_key, event.model_dump_json()),
                timeout=self.publish_timeout,
            )
        except Exception as e:
            logger.warning(
                "notification_publish_failed",
                event_type=event.event_type.value,
                appointment_id=appointment_id,
                error=str(e) or e.__class__.__name__,
            )
            return

        logger.info(
            "notification_published",
            event_type=event.event_type.value,
            appointment_id=appointment_id,
            recipients=len(event.recipient_ids),
        )

    async def drain(self) -> None:
        """Wait for in-flight publishes, e.g. on shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


# Global notification service instance
_notification_service: NotificationService | None = None


def get_notification_service() -> NotificationService:
    """Get or create the process-wide notification service."""
    global _notification_service

    if _notification_service is None:
        _notification_service = NotificationService(redis_client=get_redis_client())

    return _notification_service
