"""Service layer for webhook delivery and platform sync."""
from cms_bridge.services.webhook_dispatcher import DispatcherConfig, WebhookDispatcher
from cms_bridge.services.executor import WebhookExecutor
from cms_bridge.services.transformer import ContentTransformer, WordPressTransformer
from cms_bridge.services.sync_orchestrator import SyncOrchestrator
from cms_bridge.services.sync_store import SyncRecordStore
from cms_bridge.services.delivery_log import DeliveryLogObserver

__all__ = [
    "DispatcherConfig",
    "WebhookDispatcher",
    "WebhookExecutor",
    "ContentTransformer",
    "WordPressTransformer",
    "SyncOrchestrator",
    "SyncRecordStore",
    "DeliveryLogObserver",
]
