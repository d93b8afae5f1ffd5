"""Sync record model: which remote record a CMS item was synced to."""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Index, UniqueConstraint
from cms_bridge.database import Base


class SyncRecord(Base):
    """Mapping from a CMS content id to its record on a remote platform."""

    __tablename__ = "sync_records"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    platform = Column(String(50), nullable=False)
    cms_id = Column(String(100), nullable=False)
    remote_id = Column(String(100), nullable=False)
    last_action = Column(String(20), nullable=False)  # created, updated
    synced_at = Column(
        String(50),
        nullable=False,
        default=lambda: datetime.now(timezone.utc).isoformat(),
        onupdate=lambda: datetime.now(timezone.utc).isoformat()
    )
    created_at = Column(
        String(50),
        nullable=False,
        default=lambda: datetime.now(timezone.utc).isoformat()
    )

    __table_args__ = (
        UniqueConstraint("platform", "cms_id", name="uq_sync_records_platform_cms_id"),
        Index("idx_sync_records_platform", "platform"),
    )

    def __repr__(self):
        return f"<SyncRecord(platform='{self.platform}', cms_id='{self.cms_id}', remote_id='{self.remote_id}')>"
