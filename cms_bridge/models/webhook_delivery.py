"""Webhook delivery log model."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Text, Index
from cms_bridge.database import Base


class WebhookDeliveryLog(Base):
    """Terminal outcome of one outbound webhook (audit only, not a queue)."""

    __tablename__ = "webhook_deliveries"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(String(36), nullable=False, index=True)
    url = Column(String(500), nullable=False)
    event = Column(String(50), nullable=False)
    content_id = Column(String(100), nullable=True)
    status = Column(String(20), nullable=False)  # success, failed
    attempts = Column(Integer, nullable=False, default=1)
    last_error = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(
        String(50),
        nullable=False,
        default=lambda: datetime.now(timezone.utc).isoformat()
    )

    __table_args__ = (
        Index("idx_webhook_deliveries_status", "status"),
        Index("idx_webhook_deliveries_content", "content_id"),
    )

    def __repr__(self):
        return f"<WebhookDeliveryLog(event='{self.event}', status='{self.status}', attempts={self.attempts})>"
