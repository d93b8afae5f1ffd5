"""API dependencies."""
from typing import Optional

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cms_bridge.config import Settings, get_settings
from cms_bridge.database import async_session_maker
from cms_bridge.services.delivery_log import DeliveryLogObserver
from cms_bridge.services.platforms import get_platform_profile, platform_credentials
from cms_bridge.services.remote_client import RemotePlatformClient
from cms_bridge.services.sync_orchestrator import SyncOrchestrator
from cms_bridge.services.sync_store import SyncRecordStore
from cms_bridge.services.webhook_dispatcher import WebhookDispatcher


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_session_maker


def get_dispatcher(request: Request) -> WebhookDispatcher:
    """The dispatcher started in the application lifespan."""
    return request.app.state.dispatcher


def get_delivery_log(request: Request) -> Optional[DeliveryLogObserver]:
    return getattr(request.app.state, "delivery_log", None)


def get_http_client(request: Request) -> Optional[httpx.AsyncClient]:
    """Shared client for remote platform calls; None means one client per request."""
    return getattr(request.app.state, "http_client", None)


def get_sync_store(
    session_maker: async_sessionmaker[AsyncSession] = Depends(get_session_maker),
) -> SyncRecordStore:
    return SyncRecordStore(session_maker)


def get_orchestrator(
    platform: str,
    settings: Settings = Depends(get_settings),
    client: Optional[httpx.AsyncClient] = Depends(get_http_client),
    store: SyncRecordStore = Depends(get_sync_store),
) -> SyncOrchestrator:
    """Build a sync orchestrator for the platform named in the path."""
    profile = get_platform_profile(platform)
    base_url, api_key = platform_credentials(platform, settings)

    return SyncOrchestrator(
        client=RemotePlatformClient(
            profile,
            base_url,
            api_key=api_key,
            timeout=settings.SYNC_TIMEOUT,
            client=client,
        ),
        transformer=profile.build_transformer(),
        store=store,
        sync_direction=settings.SYNC_DIRECTION,
    )
