"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from uuid import uuid4

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sqlalchemy import text

from cms_bridge.config import get_settings
from cms_bridge.database import init_db, close_db, async_session_maker
from cms_bridge.api.routes import api_router
from cms_bridge.services.delivery_log import DeliveryLogObserver
from cms_bridge.services.events import LoggingObserver, RecordingObserver
from cms_bridge.services.executor import WebhookExecutor
from cms_bridge.services.webhook_dispatcher import DispatcherConfig, WebhookDispatcher
from cms_bridge.utils.exceptions import BridgeServiceException

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    # Startup
    logger.info("Starting CMS Bridge...")
    await init_db()
    logger.info("Database initialized")

    http_client = httpx.AsyncClient()
    delivery_log = DeliveryLogObserver(async_session_maker)
    config = DispatcherConfig.from_settings(settings)
    dispatcher = WebhookDispatcher(
        config=config,
        executor=WebhookExecutor(
            timeout=config.timeout,
            user_agent=config.user_agent,
            client=http_client,
        ),
        observers=[LoggingObserver(), RecordingObserver(), delivery_log],
    )
    dispatcher.start()

    app.state.http_client = http_client
    app.state.delivery_log = delivery_log
    app.state.dispatcher = dispatcher

    yield

    # Shutdown
    logger.info("Shutting down CMS Bridge...")
    await dispatcher.stop(drain=True)
    await delivery_log.drain()
    await http_client.aclose()
    logger.info("Webhook dispatcher stopped")

    await close_db()
    logger.info("Database connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## CMS Bridge API

Connects a headless CMS to WordPress, Drupal and Shopify.

### Features
- **Webhook Delivery**: Signed outbound webhooks with rate limiting,
  concurrency control and exponential-backoff retries
- **Platform Sync**: Create-or-update synchronization of content items
- **Inbound Webhooks**: Signature verification and transformation of
  platform webhooks into CMS content

### Outbound Webhook Payload
```json
{
  "event": "content.published",
  "content_id": "post-1",
  "content": {"id": "post-1", "title": "Hello"},
  "timestamp": 1700000000
}
```
Signed with HMAC-SHA256 over the exact body in `X-CMS-Signature: sha256=<hex>`.
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handler for service exceptions
@app.exception_handler(BridgeServiceException)
async def service_exception_handler(request: Request, exc: BridgeServiceException):
    """Handle service-level exceptions with standardized error format."""
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Request ID middleware for tracing
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add unique request ID to each request for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


app.add_middleware(RequestIDMiddleware)


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    """
    Health check endpoint with database connectivity verification.

    Returns service status, database health and dispatcher state.
    """
    db_healthy = False
    db_error = None

    try:
        async with async_session_maker() as db:
            await db.execute(text("SELECT 1"))
            db_healthy = True
    except Exception as e:
        db_error = str(e)

    dispatcher = getattr(request.app.state, "dispatcher", None)
    dispatcher_stats = dispatcher.get_stats() if dispatcher else None

    status_value = "healthy" if db_healthy else "degraded"

    return {
        "status": status_value,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "checks": {
            "database": {
                "healthy": db_healthy,
                "error": db_error,
            },
            "dispatcher": dispatcher_stats,
        }
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "api": "/api/v1",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cms_bridge.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
