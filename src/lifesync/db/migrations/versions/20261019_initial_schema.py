"""initial schema

Revision ID: 4f2a9c1e7b30
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4f2a9c1e7b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

task_status = sa.Enum(
    'PENDING', 'RUNNING', 'COMPLETED', 'FAILED', 'PAUSED',
    name='scheduled_task_status',
)
alert_outcome = sa.Enum('SENT', 'SKIPPED', 'FAILED', name='alert_outcome')
skip_reason = sa.Enum(
    'DUPLICATE_PRICE', 'BELOW_THRESHOLD', 'TOO_SOON', 'USER_DISABLED_ALERTS',
    name='alert_skip_reason',
)
channel = sa.Enum('EMAIL', 'WHATSAPP', name='notification_channel')


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('language', sa.String(8), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('price_alerts_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('whatsapp_enabled', sa.Boolean(), nullable=False, server_default=sa.text('false')),
    )
    op.create_table(
        'scheduled_tasks',
        sa.Column('task_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', task_status, nullable=False),
        sa.Column('scheduled_time', sa.BigInteger(), nullable=False),
        sa.Column('next_run', sa.BigInteger(), nullable=True),
        sa.Column('last_run', sa.BigInteger(), nullable=True),
        sa.Column('interval', sa.String(32), nullable=True),
        sa.Column('data', postgresql.JSONB(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_scheduled_tasks_status_next_run', 'scheduled_tasks', ['status', 'next_run'])
    op.create_table(
        'tracked_products',
        sa.Column('product_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('product_url', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('current_price', sa.Float(), nullable=False),
        sa.Column('original_price', sa.Float(), nullable=False),
        sa.Column('notification_threshold', sa.Float(), nullable=True),
        sa.Column('last_notified_price', sa.Float(), nullable=True),
        sa.Column('last_checked', sa.BigInteger(), nullable=True),
    )
    op.create_table(
        'alert_records',
        sa.Column('alert_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('subject_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('tracked_products.product_id', ondelete='CASCADE'), nullable=False),
        sa.Column('recipient_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('price_at_send', sa.Float(), nullable=False),
        sa.Column('discount_percentage', sa.Integer(), nullable=True),
        sa.Column('outcome', alert_outcome, nullable=False),
        sa.Column('skip_reason', skip_reason, nullable=True),
        sa.Column('channel', channel, nullable=False),
        sa.Column('message_id', sa.String(255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempt', sa.Integer(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_alert_records_subject_created', 'alert_records', ['subject_id', 'created_at'])
    op.create_table(
        'donations',
        sa.Column('donation_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('users.user_id', ondelete='CASCADE'), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
    )
    op.create_table(
        'sessions',
        sa.Column('session_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('expires', sa.BigInteger(), nullable=False),
    )
    op.create_table(
        'reports',
        sa.Column('report_id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('task_id', postgresql.UUID(as_uuid=False), sa.ForeignKey('scheduled_tasks.task_id', ondelete='SET NULL'), nullable=True),
        sa.Column('data', postgresql.JSONB(), nullable=False),
        sa.Column('generated_at', sa.BigInteger(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('reports')
    op.drop_table('sessions')
    op.drop_table('donations')
    op.drop_index('ix_alert_records_subject_created', table_name='alert_records')
    op.drop_table('alert_records')
    op.drop_table('tracked_products')
    op.drop_index('ix_scheduled_tasks_status_next_run', table_name='scheduled_tasks')
    op.drop_table('scheduled_tasks')
    op.drop_table('users')
    channel.drop(op.get_bind(), checkfirst=True)
    skip_reason.drop(op.get_bind(), checkfirst=True)
    alert_outcome.drop(op.get_bind(), checkfirst=True)
    task_status.drop(op.get_bind(), checkfirst=True)
