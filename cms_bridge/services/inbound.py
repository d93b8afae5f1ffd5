"""Verification and transformation of webhooks sent by remote platforms."""
import json
import logging
from typing import Optional

from cms_bridge.services.signer import verify
from cms_bridge.services.transformer import ContentTransformer
from cms_bridge.utils.exceptions import SignatureMismatchError, ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-CMS-Signature"
ENVELOPE_KEYS = ("content", "data")


def verify_inbound(body: bytes, signature: Optional[str], secret: str) -> None:
    """Check the raw body against the signature header; raise on mismatch."""
    if not secret:
        raise SignatureMismatchError("Inbound webhook secret is not configured")
    if not signature:
        raise SignatureMismatchError(f"Missing {SIGNATURE_HEADER} header")
    if not verify(body, signature, secret):
        raise SignatureMismatchError()


def extract_record(payload: dict) -> dict:
    """
    Return the platform record carried by an inbound body.

    Only a body with an `event`, or one without the `id` and `title` of a
    record, is unwrapped. A bare WordPress post keeps its `content`
    (`{"rendered": ...}`) as a field.
    """
    is_envelope = "event" in payload or not ("id" in payload or "title" in payload)
    if is_envelope:
        for key in ENVELOPE_KEYS:
            if isinstance(payload.get(key), dict):
                return payload[key]
    return payload


def parse_inbound(
    body: bytes,
    signature: Optional[str],
    secret: str,
    transformer: ContentTransformer,
) -> dict:
    """
    Verify an inbound webhook and convert its content to the CMS shape.

    The signature is checked over the raw bytes before anything is parsed.
    The body is either an envelope (`{"event": ..., "content"|"data": {...}}`)
    or a bare platform record.
    """
    verify_inbound(body, signature, secret)

    try:
        payload = json.loads(body)
    except ValueError:
        raise ValidationError(transformer.mapping.backward_direction, ["body"])
    if not isinstance(payload, dict):
        raise ValidationError(transformer.mapping.backward_direction, ["body"])

    event = payload.get("event")
    content = transformer.backward(extract_record(payload))
    logger.info(
        f"Accepted inbound {transformer.platform} webhook '{event}' "
        f"for content '{content.get('id')}'"
    )
    return {"event": event, "platform": transformer.platform, "content": content}
