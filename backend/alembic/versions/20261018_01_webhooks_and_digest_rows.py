"""webhooks_and_digest_rows

Revision ID: 20261018_01
Revises: 20261001_01
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261018_01'
down_revision: Union[str, Sequence[str], None] = '20261001_01'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    """Upgrade schema."""
    with op.batch_alter_table('notifications') as batch:
        batch.add_column(
            sa.Column('delivered_in_app', sa.Boolean(), nullable=False, server_default=sa.true())
        )
    op.create_table(
        'webhooks',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('team_id', _uuid(), sa.ForeignKey('teams.id'), nullable=False, index=True),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('events', sa.JSON()),
        sa.Column('secret', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'webhook_deliveries',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('webhook_id', _uuid(), sa.ForeignKey('webhooks.id'), nullable=False, index=True),
        sa.Column('event', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON()),
        sa.Column('response_code', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('delivered_at', sa.DateTime()),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('webhook_deliveries')
    op.drop_table('webhooks')
    with op.batch_alter_table('notifications') as batch:
        batch.drop_column('delivered_in_app')
