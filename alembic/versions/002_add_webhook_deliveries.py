"""Add webhook delivery log table

Revision ID: 002
Revises: 001
Create Date: 2024-01-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'webhook_deliveries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('job_id', sa.String(36), nullable=False),
        sa.Column('url', sa.String(500), nullable=False),
        sa.Column('event', sa.String(50), nullable=False),
        sa.Column('content_id', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False, default=1),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.String(50), nullable=False),
    )
    op.create_index('ix_webhook_deliveries_job_id', 'webhook_deliveries', ['job_id'])
    op.create_index('idx_webhook_deliveries_status', 'webhook_deliveries', ['status'])
    op.create_index('idx_webhook_deliveries_content', 'webhook_deliveries', ['content_id'])


def downgrade() -> None:
    op.drop_index('idx_webhook_deliveries_content')
    op.drop_index('idx_webhook_deliveries_status')
    op.drop_index('ix_webhook_deliveries_job_id')
    op.drop_table('webhook_deliveries')
