"""Persistence of CMS id -> remote id mappings."""
import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cms_bridge.models import SyncRecord

logger = logging.getLogger(__name__)


class SyncRecordStore:
    """Reads and writes SyncRecord rows, one short session per call."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get(self, platform: str, cms_id: str) -> Optional[SyncRecord]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(SyncRecord).where(
                    SyncRecord.platform == platform,
                    SyncRecord.cms_id == str(cms_id),
                )
            )
            return result.scalar_one_or_none()

    async def get_remote_id(self, platform: str, cms_id: str) -> Optional[str]:
        record = await self.get(platform, cms_id)
        return record.remote_id if record else None

    async def record(self, platform: str, cms_id: str, remote_id: Any, action: str) -> SyncRecord:
        """Create or update the mapping for a synced item."""
        async with self.session_maker() as db:
            result = await db.execute(
                select(SyncRecord).where(
                    SyncRecord.platform == platform,
                    SyncRecord.cms_id == str(cms_id),
                )
            )
            record = result.scalar_one_or_none()

            if record:
                record.remote_id = str(remote_id)
                record.last_action = action
                record.synced_at = datetime.now(timezone.utc).isoformat()
            else:
                record = SyncRecord(
                    platform=platform,
                    cms_id=str(cms_id),
                    remote_id=str(remote_id),
                    last_action=action,
                )
                db.add(record)

            await db.commit()
            await db.refresh(record)

        logger.info(f"Recorded {platform} sync of '{cms_id}' -> '{remote_id}' ({action})")
        return record

    async def forget(self, platform: str, cms_id: str) -> bool:
        """Drop a mapping; returns whether one existed."""
        async with self.session_maker() as db:
            result = await db.execute(
                delete(SyncRecord).where(
                    SyncRecord.platform == platform,
                    SyncRecord.cms_id == str(cms_id),
                )
            )
            await db.commit()
            return (result.rowcount or 0) > 0

    async def list_records(
        self,
        platform: str,
        skip: int = 0,
        limit: int = 100
    ) -> tuple[List[SyncRecord], int]:
        async with self.session_maker() as db:
            total = await db.execute(
                select(func.count(SyncRecord.id)).where(SyncRecord.platform == platform)
            )
            result = await db.execute(
                select(SyncRecord)
                .where(SyncRecord.platform == platform)
                .order_by(SyncRecord.synced_at.desc())
                .offset(skip)
                .limit(limit)
            )
            return list(result.scalars().all()), total.scalar() or 0
