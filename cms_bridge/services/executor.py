"""Signed HTTP delivery of a single webhook attempt."""
import json
import logging
from typing import Any, Optional

import httpx

from cms_bridge.services.clock import Clock, system_clock
from cms_bridge.services.delivery_queue import DeliveryResult, WebhookJob
from cms_bridge.services.signer import signature_header
from cms_bridge.utils.exceptions import (
    DeliveryHttpError,
    DeliveryTimeoutError,
    DeliveryTransportError,
)

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "HeadlessCMS-Webhook/1.0.0"


def build_payload(event: str, data: dict, timestamp: int, id_field: str = "id") -> dict:
    """Outbound webhook body: event, content id, content and send time."""
    return {
        "event": event,
        "content_id": data.get(id_field),
        "content": data,
        "timestamp": timestamp,
    }


def serialize_payload(payload: dict) -> bytes:
    """Serialize once; these exact bytes are signed and sent."""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8")


def _response_data(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


class WebhookExecutor:
    """
    Performs one signed POST per call.

    The timestamp is taken when the attempt starts, so every retry carries a
    fresh timestamp and therefore a fresh signature.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
        clock: Clock = system_clock,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self.client = client
        self.clock = clock

    def prepare(self, job: WebhookJob) -> tuple[bytes, dict[str, str]]:
        """Build the body bytes and headers for the next attempt of a job."""
        timestamp = int(self.clock.time())
        body = serialize_payload(build_payload(job.event, job.data, timestamp))
        headers = {
            "Content-Type": "application/json",
            "X-CMS-Signature": signature_header(body, job.secret),
            "X-CMS-Timestamp": str(timestamp),
            "User-Agent": self.user_agent,
        }
        return body, headers

    async def execute(self, job: WebhookJob) -> DeliveryResult:
        """Send one attempt; raise a DeliveryError subclass on any failure."""
        body, headers = self.prepare(job)

        try:
            if self.client is not None:
                response = await self.client.post(
                    job.target_url, content=body, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(job.target_url, content=body, headers=headers)

        except httpx.TimeoutException:
            raise DeliveryTimeoutError(job.target_url, self.timeout)
        except httpx.RequestError as e:
            raise DeliveryTransportError(job.target_url, str(e) or type(e).__name__)

        if not response.is_success:
            raise DeliveryHttpError(job.target_url, response.status_code, response.reason_phrase)

        return DeliveryResult(
            status=response.status_code,
            data=_response_data(response),
            headers=dict(response.headers),
        )
