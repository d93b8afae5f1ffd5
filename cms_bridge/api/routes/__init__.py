"""API routes."""
from fastapi import APIRouter
from cms_bridge.api.routes import deliveries, sync, inbound

api_router = APIRouter()

api_router.include_router(
    deliveries.router,
    prefix="/deliveries",
    tags=["Deliveries"]
)

api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["Sync"]
)

api_router.include_router(
    inbound.router,
    prefix="/inbound",
    tags=["Inbound"]
)
