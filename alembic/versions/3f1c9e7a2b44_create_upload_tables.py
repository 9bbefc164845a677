"""Create upload grant, session, asset and hand-off tables

Revision ID: 3f1c9e7a2b44
Revises:
Create Date: 2026-10-18 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9e7a2b44'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


GRANT_STATUSES = ('pending', 'used', 'expired')
SESSION_STATUSES = (
    'in_progress',
    'completion_failed',
    'completed',
    'expired',
    'aborted',
    'failed',
)
CATEGORIES = ('raw', 'deliverable', 'avatar', 'portfolio', 'public-asset', 'team-wip', 'other')


def _enum(name: str, values: Sequence[str]) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        'user_profiles',
        sa.Column('user_id', sa.Uuid(), primary_key=True),
        sa.Column('role', _enum('role', ('admin', 'team', 'client')), nullable=False),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )

    op.create_table(
        'upload_grants',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('token', sa.String(length=255), nullable=False, unique=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('context_id', sa.Uuid(), nullable=True),
        sa.Column('storage_key', sa.String(length=2048), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('max_size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('allowed_mime_types', sa.JSON(), nullable=True),
        sa.Column('status', _enum('grantstatus', GRANT_STATUSES), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_upload_grants_token', 'upload_grants', ['token'], unique=True)
    op.create_index('ix_upload_grants_owner_id', 'upload_grants', ['owner_id'])
    op.create_index(
        'ix_upload_grants_status_expires_at', 'upload_grants', ['status', 'expires_at']
    )

    op.create_table(
        'upload_sessions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('remote_session_id', sa.String(length=1024), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('context_id', sa.Uuid(), nullable=True),
        sa.Column('storage_key', sa.String(length=2048), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=32), nullable=False),
        sa.Column('total_size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('chunk_size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('total_chunks', sa.Integer(), nullable=False),
        sa.Column('status', _enum('sessionstatus', SESSION_STATUSES), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column('last_activity_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_upload_sessions_owner_id', 'upload_sessions', ['owner_id'])
    op.create_index(
        'ix_upload_sessions_status_expires_at', 'upload_sessions', ['status', 'expires_at']
    )

    op.create_table(
        'upload_session_parts',
        sa.Column(
            'session_id',
            sa.Uuid(),
            sa.ForeignKey('upload_sessions.id', ondelete='CASCADE'),
            primary_key=True,
        ),
        sa.Column('part_number', sa.Integer(), primary_key=True),
        sa.Column('checksum_tag', sa.String(length=255), nullable=False),
        sa.Column(
            'reported_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )

    op.create_table(
        'stored_assets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('storage_key', sa.String(length=2048), nullable=False, unique=True),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('context_id', sa.Uuid(), nullable=True),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('mime_type', sa.String(length=128), nullable=False),
        sa.Column('size_bytes', sa.BigInteger(), nullable=False),
        sa.Column('checksum', sa.String(length=128), nullable=True),
        sa.Column('category', _enum('uploadcategory', CATEGORIES), nullable=False),
        sa.Column('visibility', _enum('visibility', ('public', 'restricted')), nullable=False),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index('ix_stored_assets_storage_key', 'stored_assets', ['storage_key'], unique=True)
    op.create_index('ix_stored_assets_owner_id', 'stored_assets', ['owner_id'])
    op.create_index('ix_stored_assets_context_id', 'stored_assets', ['context_id'])

    op.create_table(
        'processing_jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'asset_id',
            sa.Uuid(),
            sa.ForeignKey('stored_assets.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('kind', _enum('processingjobkind', ('transcode', 'thumbnail')), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index('ix_processing_jobs_asset_id', 'processing_jobs', ['asset_id'])

    op.create_table(
        'activity_log',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity_type', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.Uuid(), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column(
            'created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
    )
    op.create_index('ix_activity_log_user_id', 'activity_log', ['user_id'])
    op.create_index('ix_activity_log_entity', 'activity_log', ['entity_type', 'entity_id'])


def downgrade() -> None:
    op.drop_table('activity_log')
    op.drop_table('processing_jobs')
    op.drop_table('stored_assets')
    op.drop_table('upload_session_parts')
    op.drop_table('upload_sessions')
    op.drop_table('upload_grants')
    op.drop_table('user_profiles')
