"""Platform sync API routes."""
from fastapi import APIRouter, Depends, Query

from cms_bridge.api.deps import get_orchestrator, get_sync_store
from cms_bridge.schemas.sync import (
    SyncRequest,
    BulkSyncRequest,
    SyncResponse,
    BulkSyncResponse,
    SyncRecordResponse,
    SyncRecordListResponse,
)
from cms_bridge.services.platforms import get_platform_profile
from cms_bridge.services.sync_orchestrator import SyncOrchestrator
from cms_bridge.services.sync_store import SyncRecordStore

router = APIRouter()


@router.post(
    "/{platform}",
    response_model=SyncResponse,
    summary="Sync one content item",
    description="Create or update a CMS item on the platform. With an `event`, "
                "content.deleted deletes the remote record instead.",
    responses={
        404: {"description": "Platform not configured"},
        409: {"description": "Outbound sync disabled by SYNC_DIRECTION"},
        422: {"description": "Content is missing required fields"},
        502: {"description": "Remote platform rejected the request"},
    }
)
async def sync_content(
    platform: str,
    request: SyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """
    Sync a content item.

    Example:
    ```json
    {
      "event": "content.updated",
      "content": {
        "id": "post-1",
        "title": "Hello",
        "content": "<p>Body</p>",
        "status": "published"
      }
    }
    ```
    """
    content = request.content.model_dump()
    if request.event:
        result = await orchestrator.handle_content_event(request.event, content)
    else:
        result = await orchestrator.sync(content)
    return result.to_dict()


@router.post(
    "/{platform}/bulk",
    response_model=BulkSyncResponse,
    summary="Sync many content items",
    description="Sync every item; failures are reported per item.",
)
async def bulk_sync_content(
    platform: str,
    request: BulkSyncRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.bulk_sync([item.model_dump() for item in request.items])


@router.delete(
    "/{platform}/{cms_id}",
    response_model=SyncResponse,
    summary="Delete a synced item",
    description="Delete the remote record of a CMS item. Deleting an item that "
                "does not exist remotely succeeds with action `already_absent`.",
)
async def delete_synced_content(
    platform: str,
    cms_id: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.delete(cms_id)
    return result.to_dict()


@router.get(
    "/{platform}/records",
    response_model=SyncRecordListResponse,
    summary="List sync records",
)
async def list_sync_records(
    platform: str,
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    store: SyncRecordStore = Depends(get_sync_store),
):
    """List CMS id -> remote id mappings for a platform, most recent first."""
    get_platform_profile(platform)
    records, total = await store.list_records(platform, skip=skip, limit=limit)
    return SyncRecordListResponse(
        records=[SyncRecordResponse.model_validate(r) for r in records],
        total=total
    )
