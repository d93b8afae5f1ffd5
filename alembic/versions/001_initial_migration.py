"""Initial migration - Create sync records table

Revision ID: 001
Revises:
Create Date: 2024-01-15

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'sync_records',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('platform', sa.String(50), nullable=False),
        sa.Column('cms_id', sa.String(100), nullable=False),
        sa.Column('remote_id', sa.String(100), nullable=False),
        sa.Column('last_action', sa.String(20), nullable=False),
        sa.Column('synced_at', sa.String(50), nullable=False),
        sa.Column('created_at', sa.String(50), nullable=False),
        sa.UniqueConstraint('platform', 'cms_id', name='uq_sync_records_platform_cms_id'),
    )
    op.create_index('idx_sync_records_platform', 'sync_records', ['platform'])


def downgrade() -> None:
    op.drop_index('idx_sync_records_platform')
    op.drop_table('sync_records')
