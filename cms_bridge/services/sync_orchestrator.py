"""
Create-vs-update synchronization of CMS content to a remote platform.

For each item the orchestrator decides whether the remote record exists
(local sync record first, then a remote lookup by CMS id), transforms the
content for the platform and creates or updates it. Error statuses steer
the fallbacks according to the platform's SyncPolicy:

- update answered 404: the mapping is stale, create the record again
- create answered 409: the record exists, look it up and update it
- delete answered 404: the record is already gone
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from cms_bridge.services.platforms import SyncPolicy
from cms_bridge.services.remote_client import RemotePlatformClient
from cms_bridge.services.sync_store import SyncRecordStore
from cms_bridge.services.transformer import ContentTransformer
from cms_bridge.utils.exceptions import (
    BridgeServiceException,
    RemotePlatformError,
    SyncDisabledError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SYNC_DIRECTIONS = ("cms_to_platform", "platform_to_cms", "bidirectional")

SYNC_EVENTS = {"content.created", "content.updated", "content.published"}
DELETE_EVENTS = {"content.deleted"}


def allows_outbound(sync_direction: str) -> bool:
    return sync_direction in ("cms_to_platform", "bidirectional")


@dataclass
class SyncResult:
    """Outcome of one sync or delete."""

    platform: str
    cms_id: str
    action: str  # created, updated, deleted, already_absent, skipped
    remote_id: Any = None
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "platform": self.platform,
            "cms_id": self.cms_id,
            "action": self.action,
            "remote_id": self.remote_id,
        }


class SyncOrchestrator:
    """Synchronizes CMS content with one remote platform."""

    def __init__(
        self,
        client: RemotePlatformClient,
        transformer: ContentTransformer,
        store: Optional[SyncRecordStore] = None,
        policy: Optional[SyncPolicy] = None,
        sync_direction: str = "cms_to_platform",
    ):
        if sync_direction not in SYNC_DIRECTIONS:
            raise ValueError(
                f"sync_direction must be one of {SYNC_DIRECTIONS}, got '{sync_direction}'"
            )

        self.client = client
        self.transformer = transformer
        self.store = store
        self.policy = policy or client.profile.policy
        self.sync_direction = sync_direction

    @property
    def platform(self) -> str:
        return self.client.platform

    def _ensure_outbound(self) -> None:
        if not allows_outbound(self.sync_direction):
            raise SyncDisabledError(self.platform, self.sync_direction)

    def _cms_id(self, content: dict) -> str:
        """The item's CMS id; items without one cannot be tracked."""
        cms_id = content.get("id")
        if cms_id is None or not str(cms_id).strip():
            raise ValidationError(self.transformer.mapping.forward_direction, ["id"])
        return str(cms_id)

    async def find_remote_id(self, cms_id: str) -> Any:
        """Local sync record first, then the platform's lookup by CMS id."""
        if self.store is not None:
            remote_id = await self.store.get_remote_id(self.platform, cms_id)
            if remote_id is not None:
                return remote_id

        record = await self.client.find_by_cms_id(cms_id)
        return self.client.remote_id_of(record)

    async def sync(self, content: dict) -> SyncResult:
        """
        Create or update one CMS item on the platform.

        Raises ValidationError before any remote call when the transformed
        content lacks required fields, and RemotePlatformError when the
        platform rejects the request and no policy fallback applies.
        """
        self._ensure_outbound()

        cms_id = self._cms_id(content)
        body = self.transformer.forward(content)
        remote_id = await self.find_remote_id(cms_id)

        if remote_id is not None:
            result = await self._update_or_recreate(cms_id, remote_id, body)
        else:
            result = await self._create_or_update(cms_id, body)

        if self.store is not None and result.remote_id is not None:
            await self.store.record(self.platform, cms_id, result.remote_id, result.action)

        logger.info(
            f"Synced content '{cms_id}' to {self.platform}: {result.action} "
            f"(remote id {result.remote_id})"
        )
        return result

    async def _update_or_recreate(self, cms_id: str, remote_id: Any, body: dict) -> SyncResult:
        try:
            data = await self.client.update(remote_id, body)
        except RemotePlatformError as e:
            if not (e.normalized.is_not_found and self.policy.create_on_update_not_found):
                raise
            logger.warning(
                f"{self.platform} record {remote_id} for content '{cms_id}' is gone, creating it again"
            )
            if self.store is not None:
                await self.store.forget(self.platform, cms_id)
            return await self._create(cms_id, body)

        return SyncResult(
            platform=self.platform,
            cms_id=cms_id,
            action="updated",
            remote_id=self.client.remote_id_of(data) or remote_id,
            data=data,
        )

    async def _create_or_update(self, cms_id: str, body: dict) -> SyncResult:
        try:
            return await self._create(cms_id, body)
        except RemotePlatformError as e:
            if not (e.normalized.is_conflict and self.policy.update_on_create_conflict):
                raise
            logger.warning(
                f"{self.platform} already has content '{cms_id}', updating instead"
            )
            record = await self.client.find_by_cms_id(cms_id)
            remote_id = self.client.remote_id_of(record)
            if remote_id is None:
                raise
            data = await self.client.update(remote_id, body)
            return SyncResult(
                platform=self.platform,
                cms_id=cms_id,
                action="updated",
                remote_id=self.client.remote_id_of(data) or remote_id,
                data=data,
            )

    async def _create(self, cms_id: str, body: dict) -> SyncResult:
        data = await self.client.create(body)
        return SyncResult(
            platform=self.platform,
            cms_id=cms_id,
            action="created",
            remote_id=self.client.remote_id_of(data),
            data=data,
        )

    async def delete(self, cms_id: str) -> SyncResult:
        """Delete the remote record; an absent record counts as deleted."""
        self._ensure_outbound()

        cms_id = str(cms_id)
        remote_id = await self.find_remote_id(cms_id)
        action = "deleted"

        if remote_id is None:
            action = "already_absent"
        else:
            try:
                await self.client.delete(remote_id)
            except RemotePlatformError as e:
                if not (e.normalized.is_not_found and self.policy.delete_not_found_is_success):
                    raise
                action = "already_absent"

        if self.store is not None:
            await self.store.forget(self.platform, cms_id)

        logger.info(f"Deleted content '{cms_id}' from {self.platform}: {action}")
        return SyncResult(
            platform=self.platform,
            cms_id=cms_id,
            action=action,
            remote_id=remote_id,
        )

    async def bulk_sync(self, items: list[dict], concurrency: int = 5) -> dict:
        """Sync many items; one failure does not stop the rest."""
        self._ensure_outbound()
        semaphore = asyncio.Semaphore(concurrency)

        async def sync_one(item: dict) -> dict:
            async with semaphore:
                try:
                    result = await self.sync(item)
                    return {"success": True, **result.to_dict()}
                except BridgeServiceException as e:
                    return {
                        "success": False,
                        "platform": self.platform,
                        "cms_id": str(item.get("id")),
                        "error": e.message,
                    }

        results = await asyncio.gather(*(sync_one(item) for item in items))
        succeeded = sum(1 for r in results if r["success"])

        logger.info(
            f"Bulk sync to {self.platform}: {succeeded} succeeded, "
            f"{len(results) - succeeded} failed"
        )
        return {
            "total": len(results),
            "succeeded": succeeded,
            "failed": len(results) - succeeded,
            "results": list(results),
        }

    async def handle_content_event(self, event: str, content: dict) -> SyncResult:
        """Route a CMS content event to sync or delete."""
        if event in SYNC_EVENTS:
            return await self.sync(content)
        if event in DELETE_EVENTS:
            return await self.delete(self._cms_id(content))

        logger.debug(f"Ignoring event '{event}' for {self.platform}")
        return SyncResult(
            platform=self.platform,
            cms_id=str(content.get("id")),
            action="skipped",
        )
