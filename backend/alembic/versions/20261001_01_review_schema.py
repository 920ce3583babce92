"""review_schema

Revision ID: 20261001_01
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '20261001_01'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid():
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False, unique=True),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String()),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('unread_notification_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_digest', sa.DateTime()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'teams',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('owner_id', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'team_members',
        sa.Column('team_id', _uuid(), sa.ForeignKey('teams.id'), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('role', sa.String(), nullable=False, server_default='member'),
        sa.Column('invited_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('joined_at', sa.DateTime()),
    )
    op.create_table(
        'projects',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String()),
        sa.Column('owner_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('team_id', _uuid(), sa.ForeignKey('teams.id'), nullable=True),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'assets',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('project_id', _uuid(), sa.ForeignKey('projects.id'), nullable=False, index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('media_type', sa.String(), nullable=False, server_default='video'),
        sa.Column('file_url', sa.String(), nullable=True),
        sa.Column('version_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'asset_watchers',
        sa.Column('asset_id', _uuid(), sa.ForeignKey('assets.id'), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'versions',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('asset_id', _uuid(), sa.ForeignKey('assets.id'), nullable=False, index=True),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('file_url', sa.String(), nullable=False),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('uploaded_by', _uuid(), sa.ForeignKey('users.id')),
        sa.Column('created_at', sa.DateTime()),
        sa.UniqueConstraint('asset_id', 'version_number', name='uq_versions_asset_number'),
    )
    op.create_table(
        'review_invites',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('asset_id', _uuid(), sa.ForeignKey('assets.id'), nullable=False, index=True),
        sa.Column('token', sa.String(), nullable=False, unique=True, index=True),
        sa.Column('permission', sa.String(), nullable=False, server_default='comment'),
        sa.Column('reviewer_name', sa.String(), nullable=True),
        sa.Column('reviewer_email', sa.String(), nullable=True),
        sa.Column('watermark_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('watermark_text', sa.String(), nullable=True),
        sa.Column('download_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_views', sa.Integer(), nullable=True),
        sa.Column('view_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_viewed_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'comments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('asset_id', _uuid(), sa.ForeignKey('assets.id'), nullable=False, index=True),
        sa.Column('parent_id', _uuid(), sa.ForeignKey('comments.id'), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('author_id', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('author_name', sa.String(), nullable=False),
        sa.Column('author_email', sa.String(), nullable=True),
        sa.Column('invite_id', _uuid(), sa.ForeignKey('review_invites.id'), nullable=True),
        sa.Column('timecode_seconds', sa.Float(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='open'),
        sa.Column('resolved_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('resolved_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_table(
        'annotations',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('version_id', _uuid(), sa.ForeignKey('versions.id'), nullable=False, index=True),
        sa.Column('comment_id', _uuid(), sa.ForeignKey('comments.id'), nullable=True),
        sa.Column('shape', sa.String(), nullable=False),
        sa.Column('points', sa.JSON()),
        sa.Column('radius', sa.Float(), nullable=True),
        sa.Column('stroke_width', sa.Float(), nullable=True),
        sa.Column('color', sa.String(), nullable=True),
        sa.Column('opacity', sa.Float(), nullable=True),
        sa.Column('timecode_seconds', sa.Float(), nullable=True),
        sa.Column('page_number', sa.Integer(), nullable=True),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'comment_reactions',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('comment_id', _uuid(), sa.ForeignKey('comments.id'), nullable=False, index=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('emoji', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime()),
        sa.UniqueConstraint('comment_id', 'user_id', 'emoji', name='uq_reaction_comment_user_emoji'),
    )
    op.create_table(
        'comment_attachments',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('comment_id', _uuid(), sa.ForeignKey('comments.id'), nullable=False, index=True),
        sa.Column('file_url', sa.String(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('file_type', sa.String(), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=False),
        sa.Column('uploaded_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'approval_steps',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('asset_id', _uuid(), sa.ForeignKey('assets.id'), nullable=False, index=True),
        sa.Column('sequence', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('role_label', sa.String(), nullable=False),
        sa.Column('assignee_id', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('assignee_email', sa.String(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('decision_note', sa.Text(), nullable=True),
        sa.Column('decided_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('decided_by_invite', _uuid(), sa.ForeignKey('review_invites.id'), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'share_views',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('invite_id', _uuid(), sa.ForeignKey('review_invites.id'), nullable=False, index=True),
        sa.Column('viewer_ip_hash', sa.String(), nullable=True),
        sa.Column('duration_seconds', sa.Float(), server_default='0'),
        sa.Column('actions', sa.JSON()),
        sa.Column('viewed_at', sa.DateTime()),
    )
    op.create_table(
        'activity_log',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('actor_id', _uuid(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('actor_name', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('team_id', _uuid(), nullable=True),
        sa.Column('project_id', _uuid(), nullable=True, index=True),
        sa.Column('asset_id', _uuid(), nullable=True),
        sa.Column('details', sa.JSON()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'notifications',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), nullable=False, index=True),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.String(), server_default=''),
        sa.Column('data', sa.JSON()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime()),
    )
    op.create_table(
        'notification_preferences',
        sa.Column('id', _uuid(), primary_key=True),
        sa.Column('user_id', _uuid(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('in_app_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('email_frequency', sa.String(), nullable=False, server_default='immediate'),
        sa.UniqueConstraint('user_id', 'event_type'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        'notification_preferences',
        'notifications',
        'activity_log',
        'share_views',
        'approval_steps',
        'comment_attachments',
        'comment_reactions',
        'annotations',
        'comments',
        'review_invites',
        'versions',
        'asset_watchers',
        'assets',
        'projects',
        'team_members',
        'teams',
        'users',
    ):
        op.drop_table(table)
