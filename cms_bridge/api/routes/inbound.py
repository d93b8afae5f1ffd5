"""Inbound platform webhook API routes."""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from cms_bridge.config import Settings, get_settings
from cms_bridge.schemas.sync import InboundWebhookResponse
from cms_bridge.services.inbound import parse_inbound
from cms_bridge.services.platforms import get_platform_profile

router = APIRouter()


@router.post(
    "/{platform}",
    response_model=InboundWebhookResponse,
    summary="Receive a platform webhook",
    description="Verify the `X-CMS-Signature` of a webhook sent by a platform and "
                "return its content in CMS shape.",
    responses={
        401: {"description": "Missing or invalid signature"},
        404: {"description": "Unknown platform"},
        422: {"description": "Content is missing required fields"},
    }
)
async def receive_webhook(
    platform: str,
    request: Request,
    x_cms_signature: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    profile = get_platform_profile(platform)
    body = await request.body()
    return parse_inbound(
        body,
        x_cms_signature,
        settings.INBOUND_WEBHOOK_SECRET,
        profile.build_transformer(),
    )
