"""Pydantic schemas for platform sync operations."""
from typing import Any, List, Optional
from pydantic import BaseModel, Field


class ContentItem(BaseModel):
    """A CMS content item; fields beyond `id` and `title` pass through to the transformer."""

    id: str = Field(..., min_length=1, max_length=100, description="CMS content id")
    title: Optional[str] = None

    model_config = {"extra": "allow"}


class SyncRequest(BaseModel):
    """Schema for syncing one content item, optionally routed by a CMS event."""

    content: ContentItem
    event: Optional[str] = Field(
        None,
        description="content.created, content.updated, content.published or content.deleted"
    )


class BulkSyncRequest(BaseModel):
    items: List[ContentItem] = Field(..., min_length=1)


class SyncResponse(BaseModel):
    """Schema for the outcome of one sync."""

    platform: str
    cms_id: str
    action: str
    remote_id: Any = None


class BulkSyncItem(BaseModel):
    success: bool
    platform: str
    cms_id: str
    action: Optional[str] = None
    remote_id: Any = None
    error: Optional[str] = None


class BulkSyncResponse(BaseModel):
    total: int
    succeeded: int
    failed: int
    results: List[BulkSyncItem]


class SyncRecordResponse(BaseModel):
    """Schema for a stored CMS id -> remote id mapping."""

    platform: str
    cms_id: str
    remote_id: str
    last_action: str
    synced_at: str
    created_at: str

    class Config:
        from_attributes = True


class SyncRecordListResponse(BaseModel):
    records: List[SyncRecordResponse]
    total: int


class InboundWebhookResponse(BaseModel):
    """Schema for a verified inbound webhook in CMS shape."""

    event: Optional[str] = None
    platform: str
    content: dict[str, Any]
