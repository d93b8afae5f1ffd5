"""Pydantic schemas for request/response validation."""
from cms_bridge.schemas.delivery import (
    DeliveryCreate,
    DeliveryBatchCreate,
    DeliveryTestRequest,
    DeliveryQueuedResponse,
    DeliveryBatchResponse,
    DeliveryTestResponse,
    DeliveryStatsResponse,
    DeliveryControlResponse,
)
from cms_bridge.schemas.sync import (
    ContentItem,
    SyncRequest,
    BulkSyncRequest,
    SyncResponse,
    BulkSyncResponse,
    SyncRecordResponse,
    SyncRecordListResponse,
    InboundWebhookResponse,
)

__all__ = [
    # Delivery schemas
    "DeliveryCreate",
    "DeliveryBatchCreate",
    "DeliveryTestRequest",
    "DeliveryQueuedResponse",
    "DeliveryBatchResponse",
    "DeliveryTestResponse",
    "DeliveryStatsResponse",
    "DeliveryControlResponse",
    # Sync schemas
    "ContentItem",
    "SyncRequest",
    "BulkSyncRequest",
    "SyncResponse",
    "BulkSyncResponse",
    "SyncRecordResponse",
    "SyncRecordListResponse",
    "InboundWebhookResponse",
]
