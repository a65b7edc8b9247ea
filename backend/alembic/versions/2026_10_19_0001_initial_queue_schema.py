"""jobs, videos and clips tables

Revision ID: 001_queue_schema
Revises: 
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers
revision: str = '001_queue_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'jobs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('job_type', sa.String(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('priority', sa.String(), nullable=False, server_default='normal'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='3'),
        sa.Column('run_after', sa.DateTime(), nullable=True),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error_message', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('failed_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_jobs_job_type', 'jobs', ['job_type'])
    op.create_index('ix_jobs_priority', 'jobs', ['priority'])
    op.create_index('ix_jobs_status', 'jobs', ['status'])
    op.create_index('ix_jobs_created_at', 'jobs', ['created_at'])

    op.create_table(
        'videos',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False, server_default=''),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('duration', sa.Float(), nullable=False, server_default='0'),
        sa.Column('analysis_status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('ai_suggestions', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_videos_user_id', 'videos', ['user_id'])
    op.create_index('ix_videos_analysis_status', 'videos', ['analysis_status'])

    op.create_table(
        'clips',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('video_id', sa.UUID(), nullable=False),
        sa.Column('job_id', sa.UUID(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='processing'),
        sa.Column('render_reference', sa.String(), nullable=True),
        sa.Column('progress', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('url', sa.String(), nullable=True),
        sa.Column('error', sa.String(), nullable=True),
        sa.Column('start_time', sa.Float(), nullable=False),
        sa.Column('end_time', sa.Float(), nullable=False),
        sa.Column('platform', sa.String(), nullable=False, server_default='tiktok'),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('hook', sa.String(), nullable=False, server_default=''),
        sa.Column('ai_score', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['video_id'], ['videos.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_clips_user_id', 'clips', ['user_id'])
    op.create_index('ix_clips_video_id', 'clips', ['video_id'])
    op.create_index('ix_clips_job_id', 'clips', ['job_id'])
    op.create_index('ix_clips_status', 'clips', ['status'])
    op.create_index('ix_clips_platform', 'clips', ['platform'])
    op.create_index('ix_clips_render_reference', 'clips', ['render_reference'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_clips_render_reference', 'clips')
    op.drop_index('ix_clips_platform', 'clips')
    op.drop_index('ix_clips_status', 'clips')
    op.drop_index('ix_clips_job_id', 'clips')
    op.drop_index('ix_clips_video_id', 'clips')
    op.drop_index('ix_clips_user_id', 'clips')
    op.drop_table('clips')

    op.drop_index('ix_videos_analysis_status', 'videos')
    op.drop_index('ix_videos_user_id', 'videos')
    op.drop_table('videos')

    op.drop_index('ix_jobs_created_at', 'jobs')
    op.drop_index('ix_jobs_status', 'jobs')
    op.drop_index('ix_jobs_priority', 'jobs')
    op.drop_index('ix_jobs_job_type', 'jobs')
    op.drop_table('jobs')
