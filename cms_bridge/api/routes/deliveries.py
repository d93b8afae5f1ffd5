"""Outbound webhook delivery API routes."""
import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from cms_bridge.api.deps import get_delivery_log, get_dispatcher
from cms_bridge.schemas.delivery import (
    DeliveryCreate,
    DeliveryBatchCreate,
    DeliveryTestRequest,
    DeliveryQueuedResponse,
    DeliveryResultResponse,
    DeliveryBatchResponse,
    DeliveryTestResponse,
    DeliveryStatsResponse,
    DeliveryControlResponse,
)
from cms_bridge.services.delivery_log import DeliveryLogObserver
from cms_bridge.services.webhook_dispatcher import WebhookDispatcher, consume_outcome

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=DeliveryQueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue a webhook",
    description="Queue a signed webhook for delivery. With `wait=true` the request "
                "returns once the webhook is delivered or has permanently failed.",
    responses={
        200: {"description": "Webhook delivered (wait=true)"},
        202: {"description": "Webhook queued"},
        502: {"description": "Delivery failed after all retries (wait=true)"},
        503: {"description": "Queue is full"},
    }
)
async def create_delivery(
    delivery: DeliveryCreate,
    response: Response,
    wait: bool = Query(False, description="Wait for the terminal outcome"),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    """
    Queue a webhook.

    Example:
    ```json
    {
      "url": "https://example.com/webhooks/cms",
      "secret": "shared-secret",
      "event": "content.published",
      "data": {"id": "post-1", "title": "Hello"}
    }
    ```
    """
    job = dispatcher.enqueue_job(delivery.url, delivery.secret, delivery.event, delivery.data)
    # A dropped client stops the wait, never the delivery
    job.future.add_done_callback(consume_outcome)
    queued = DeliveryQueuedResponse(
        job_id=job.id,
        event=delivery.event,
        content_id=delivery.data.get("id"),
        status="queued",
        queue_length=len(dispatcher.queue),
    )

    if not wait:
        return queued

    result = await asyncio.shield(job.future)
    response.status_code = status.HTTP_200_OK
    queued.status = "delivered"
    queued.queue_length = len(dispatcher.queue)
    queued.result = DeliveryResultResponse(status=result.status, data=result.data)
    return queued


@router.post(
    "/batch",
    response_model=DeliveryBatchResponse,
    summary="Send several webhooks",
    description="Queue several webhooks and wait for all of them; results are split "
                "into successful and failed deliveries.",
)
async def create_delivery_batch(
    batch: DeliveryBatchCreate,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    results = await dispatcher.batch_send([webhook.model_dump() for webhook in batch.webhooks])

    def item(entry: dict) -> dict:
        webhook = entry["webhook"]
        result = entry.get("result")
        return {
            "url": webhook["url"],
            "event": webhook["event"],
            "content_id": webhook["data"].get("id"),
            "status": result.status if result else None,
            "error": entry.get("error"),
        }

    return DeliveryBatchResponse(
        successful=[item(entry) for entry in results["successful"]],
        failed=[item(entry) for entry in results["failed"]],
    )


@router.post(
    "/test",
    response_model=DeliveryTestResponse,
    summary="Test a webhook target",
    description="Send a sample signed payload to check that the target accepts it.",
)
async def test_delivery(
    target: DeliveryTestRequest,
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
):
    return await dispatcher.test_webhook(target.url, target.secret)


@router.get(
    "/stats",
    response_model=DeliveryStatsResponse,
    summary="Delivery statistics",
)
async def get_delivery_stats(
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
    delivery_log: Optional[DeliveryLogObserver] = Depends(get_delivery_log),
):
    """
    Get queue, rate limit and concurrency state.

    Delivered and failed totals come from the delivery log when it is enabled.
    """
    stats = dispatcher.get_stats()
    if delivery_log is not None:
        stats.update(await delivery_log.get_stats())
    return stats


@router.post(
    "/pause",
    response_model=DeliveryControlResponse,
    summary="Pause processing",
    description="Stop starting new deliveries. Queued webhooks stay queued.",
)
async def pause_deliveries(dispatcher: WebhookDispatcher = Depends(get_dispatcher)):
    dispatcher.pause()
    return DeliveryControlResponse(message="Processing paused", is_processing=dispatcher.is_processing)


@router.post(
    "/resume",
    response_model=DeliveryControlResponse,
    summary="Resume processing",
)
async def resume_deliveries(dispatcher: WebhookDispatcher = Depends(get_dispatcher)):
    dispatcher.resume()
    return DeliveryControlResponse(message="Processing resumed", is_processing=dispatcher.is_processing)


@router.delete(
    "",
    response_model=DeliveryControlResponse,
    summary="Clear the queue",
    description="Reject every queued webhook and every webhook waiting for a retry. "
                "Deliveries already in flight are not aborted.",
)
async def clear_deliveries(dispatcher: WebhookDispatcher = Depends(get_dispatcher)):
    cleared = dispatcher.clear()
    logger.info(f"Queue cleared through the API ({cleared} jobs)")
    return DeliveryControlResponse(
        message="Queue cleared",
        is_processing=dispatcher.is_processing,
        cleared=cleared,
    )
