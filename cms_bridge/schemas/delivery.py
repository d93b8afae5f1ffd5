"""Pydantic schemas for webhook delivery operations."""
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class DeliveryCreate(BaseModel):
    """Schema for enqueueing one outbound webhook."""

    url: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Target URL the webhook is POSTed to"
    )
    secret: str = Field(
        ...,
        min_length=1,
        description="Shared secret used to sign the payload"
    )
    event: str = Field(
        ...,
        min_length=1,
        max_length=50,
        description="Event name, e.g. content.published"
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Content item sent as the payload's `content`"
    )


class DeliveryBatchCreate(BaseModel):
    """Schema for sending several webhooks at once."""

    webhooks: List[DeliveryCreate] = Field(
        ...,
        min_length=1,
        description="Webhooks to send"
    )


class DeliveryTestRequest(BaseModel):
    """Schema for a connectivity test against a webhook target."""

    url: str = Field(..., min_length=1, max_length=500)
    secret: str = Field(..., min_length=1)


class DeliveryResultResponse(BaseModel):
    """Response of the target for a delivered webhook."""

    status: int
    data: Any = None


class DeliveryQueuedResponse(BaseModel):
    """Schema for an accepted (and optionally completed) delivery."""

    job_id: str
    event: str
    content_id: Any = None
    status: str
    queue_length: int
    result: Optional[DeliveryResultResponse] = None
    error: Optional[str] = None


class DeliveryBatchItem(BaseModel):
    url: str
    event: str
    content_id: Any = None
    status: Optional[int] = None
    error: Optional[str] = None


class DeliveryBatchResponse(BaseModel):
    """Schema for batch send results."""

    successful: List[DeliveryBatchItem]
    failed: List[DeliveryBatchItem]


class DeliveryTestResponse(BaseModel):
    success: bool
    message: str
    error: Optional[str] = None


class DeliveryStatsResponse(BaseModel):
    """Schema for dispatcher and delivery log statistics."""

    queue_length: int
    queue_max_size: int
    retries_waiting: int
    is_processing: bool
    active_requests: int
    max_concurrent: int
    rate_limit_used: int
    rate_limit_max: int
    window_seconds: float
    window_resets_in_seconds: float
    config: dict[str, Any]
    delivered: int = 0
    failed: int = 0


class DeliveryControlResponse(BaseModel):
    message: str
    is_processing: bool
    cleared: Optional[int] = None
