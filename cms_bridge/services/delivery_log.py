"""Writes terminal webhook outcomes to the delivery log table."""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cms_bridge.models import WebhookDeliveryLog
from cms_bridge.services.events import (
    AsyncHandlerObserver,
    DeliveryEvent,
    DeliveryEventType,
)

logger = logging.getLogger(__name__)


class DeliveryLogObserver(AsyncHandlerObserver):
    """Persists success and failure events; queue state itself is never stored."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        super().__init__(
            self.record,
            {DeliveryEventType.SUCCESS, DeliveryEventType.FAILED},
        )
        self.session_maker = session_maker

    async def record(self, event: DeliveryEvent) -> None:
        async with self.session_maker() as db:
            db.add(
                WebhookDeliveryLog(
                    job_id=event.job_id,
                    url=event.target_url or "",
                    event=event.event or "",
                    content_id=str(event.content_id) if event.content_id is not None else None,
                    status=event.type.value,
                    attempts=event.attempt or 1,
                    last_error=event.error,
                    duration_ms=event.duration_ms,
                )
            )
            await db.commit()

    async def get_stats(self) -> dict:
        """Count logged deliveries by status."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(
                    WebhookDeliveryLog.status,
                    func.count(WebhookDeliveryLog.id)
                )
                .group_by(WebhookDeliveryLog.status)
            )
            stats = {row[0]: row[1] for row in result}

        return {
            "delivered": stats.get("success", 0),
            "failed": stats.get("failed", 0),
        }
