"""Initial schema

Revision ID: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'destinations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('airport_code', sa.String(10), nullable=False, unique=True),
        sa.Column('city_name', sa.String(100), nullable=False),
        sa.Column('country', sa.String(100)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'price_observations',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('outbound_date', sa.Date(), nullable=False),
        sa.Column('observed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('price > 0', name='ck_price_observations_positive'),
    )
    op.create_index('idx_price_observations_destination_time', 'price_observations', ['destination_id', 'observed_at'])

    op.create_table(
        'price_statistics',
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('sample_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('avg_90day', sa.Numeric(10, 2)),
        sa.Column('percentile_25', sa.Numeric(10, 2)),
        sa.Column('percentile_50', sa.Numeric(10, 2)),
        sa.Column('all_time_low', sa.Numeric(10, 2)),
        sa.Column('refreshed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price_threshold', sa.Numeric(10, 2), nullable=False),
        sa.Column('alert_cooldown_days', sa.Integer(), nullable=False, server_default='7'),
        sa.Column('min_deal_quality', sa.String(20)),
        sa.Column('min_price_drop_percent', sa.Numeric(5, 2)),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_alert_sent_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', 'destination_id', name='uix_user_destination'),
    )
    op.create_index('idx_subscriptions_destination', 'subscriptions', ['destination_id', 'is_active'])

    op.create_table(
        'notification_preferences',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('email_notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('digest_frequency', sa.String(10), nullable=False, server_default='instant'),
        sa.Column('max_alerts_per_week', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('quiet_hours_start', sa.Integer()),
        sa.Column('quiet_hours_end', sa.Integer()),
        sa.Column('timezone', sa.String(50), nullable=False, server_default='America/New_York'),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        'alert_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('subscription_id', sa.Integer(), sa.ForeignKey('subscriptions.id', ondelete='SET NULL')),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('tracking_threshold', sa.Numeric(10, 2), nullable=False),
        sa.Column('deal_quality', sa.String(20), nullable=False),
        sa.Column('savings_percent', sa.Numeric(8, 2), nullable=False),
        sa.Column('avg_90day_price', sa.Numeric(10, 2)),
        sa.Column('all_time_low', sa.Numeric(10, 2)),
        sa.Column('outbound_date', sa.Date()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('sent_at', sa.DateTime()),
        sa.Column('enqueue_failed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('email_opened', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('opened_at', sa.DateTime()),
        sa.Column('link_clicked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('clicked_at', sa.DateTime()),
    )
    op.create_index('idx_alert_events_user_created', 'alert_events', ['user_id', 'created_at'])

    op.create_table(
        'queued_messages',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('channel', sa.String(30), nullable=False, server_default='price_alert'),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('destination_id', sa.Integer(), sa.ForeignKey('destinations.id', ondelete='CASCADE')),
        sa.Column('alert_event_id', sa.Integer(), sa.ForeignKey('alert_events.id', ondelete='CASCADE')),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(10), nullable=False, server_default='pending'),
        sa.Column('error_message', sa.Text()),
        sa.Column('email_opened', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('link_clicked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('sent_at', sa.DateTime()),
    )
    op.create_index('idx_queued_messages_status', 'queued_messages', ['status'])
    op.create_index('idx_queued_messages_alert_event', 'queued_messages', ['alert_event_id'])


def downgrade():
    op.drop_table('queued_messages')
    op.drop_table('alert_events')
    op.drop_table('notification_preferences')
    op.drop_table('subscriptions')
    op.drop_table('price_statistics')
    op.drop_table('price_observations')
    op.drop_table('destinations')
