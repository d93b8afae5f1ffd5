"""
Mock Webhook Receiver - Webhook Target Simulator

This server stands in for a site that receives CMS Bridge webhooks. It
verifies the `X-CMS-Signature` header with the shared secret, stores what it
receives, and can be told to fail the next N requests so retries can be
watched by hand.
"""
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from cms_bridge.services.signer import verify

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

WEBHOOK_SECRET = os.environ.get("MOCK_WEBHOOK_SECRET", "test-secret")

app = FastAPI(
    title="Mock Webhook Receiver",
    description="Simulates a site receiving signed CMS webhooks",
    version="1.0.0"
)

# In-memory storage for received webhooks (for demo purposes)
received_webhooks: List[Dict[str, Any]] = []
failure_state = {"remaining": 0, "status_code": 500}


@app.post("/webhook")
async def receive_webhook(
    request: Request,
    x_cms_signature: Optional[str] = Header(None),
    x_cms_timestamp: Optional[str] = Header(None),
):
    """
    Receive a webhook from the CMS Bridge.

    Returns 401 when the signature does not verify and the configured error
    status while injected failures remain.
    """
    body = await request.body()

    if failure_state["remaining"] > 0:
        failure_state["remaining"] -= 1
        logger.warning(
            f"Injected failure ({failure_state['remaining']} left), "
            f"answering {failure_state['status_code']}"
        )
        return JSONResponse(
            status_code=failure_state["status_code"],
            content={"error": "Injected failure"}
        )

    if not verify(body, x_cms_signature or "", WEBHOOK_SECRET):
        logger.warning("Rejected webhook with invalid signature")
        return JSONResponse(
            status_code=401,
            content={"error": "Invalid signature"}
        )

    payload = json.loads(body)
    received_webhooks.append({
        "payload": payload,
        "timestamp_header": x_cms_timestamp,
        "received_at": datetime.now(timezone.utc).isoformat(),
    })

    # Keep only last 100 webhooks in memory
    if len(received_webhooks) > 100:
        received_webhooks.pop(0)

    logger.info(
        f"Received {payload.get('event', 'unknown')} webhook for content "
        f"{payload.get('content_id', 'unknown')}"
    )
    logger.info(f"Payload: {json.dumps(payload, indent=2)}")

    return {
        "status": "received",
        "event": payload.get("event"),
        "content_id": payload.get("content_id"),
    }


@app.post("/fail")
async def fail_next(count: int = 1, status_code: int = 500):
    """Make the next `count` webhooks fail with `status_code`."""
    failure_state["remaining"] = count
    failure_state["status_code"] = status_code
    return {"message": f"Next {count} webhooks will return {status_code}"}


@app.get("/webhooks")
async def list_webhooks(limit: int = 20):
    """
    List recently received webhooks.

    This endpoint is useful for debugging and verifying that
    webhooks are being received correctly.
    """
    return {
        "total": len(received_webhooks),
        "showing": min(limit, len(received_webhooks)),
        "webhooks": received_webhooks[-limit:][::-1]  # Most recent first
    }


@app.delete("/webhooks")
async def clear_webhooks():
    """Clear all stored webhooks and pending injected failures."""
    received_webhooks.clear()
    failure_state["remaining"] = 0
    return {"message": "All webhooks cleared"}


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "Mock Webhook Receiver",
        "webhooks_received": len(received_webhooks),
        "failures_pending": failure_state["remaining"],
    }


@app.get("/")
async def root():
    """Root endpoint with service information."""
    return {
        "service": "Mock Webhook Receiver",
        "description": "Simulates a site receiving signed CMS Bridge webhooks",
        "endpoints": {
            "POST /webhook": "Receive a signed webhook",
            "POST /fail": "Fail the next N webhooks",
            "GET /webhooks": "List received webhooks",
            "DELETE /webhooks": "Clear stored webhooks",
            "GET /health": "Health check"
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
