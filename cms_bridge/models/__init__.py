"""Database models."""
from cms_bridge.models.sync_record import SyncRecord
from cms_bridge.models.webhook_delivery import WebhookDeliveryLog

__all__ = [
    "SyncRecord",
    "WebhookDeliveryLog",
]
