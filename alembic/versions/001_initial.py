"""Initial migration - create all tables.

Revision ID: 001
Revises: 
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Subscribers
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('username', sa.String(), nullable=True),
        sa.Column('subscription_tier', sa.String(), nullable=False, server_default='free'),
        sa.Column('subscription_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'auto_bump_settings',
        sa.Column('user_id', sa.String(), primary_key=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('interval_hours', sa.Integer(), nullable=True),
        sa.Column('last_auto_bump_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )

    # Listings and their bump log
    op.create_table(
        'listings',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('type', sa.String(), nullable=False, server_default='server'),
        sa.Column('status', sa.String(), nullable=False, server_default='active'),
        sa.Column('member_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('avatar_url', sa.String(), nullable=True),
        sa.Column('invite_url', sa.String(), nullable=True),
        sa.Column('premium_featured', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('bump_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_bumped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['profiles.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_listings_user_id', 'listings', ['user_id'])
    op.create_index('ix_listings_status', 'listings', ['status'])
    op.create_index('ix_listings_created_at', 'listings', ['created_at'])

    op.create_table(
        'bumps',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('listing_id', sa.String(), nullable=False),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('bump_type', sa.String(), nullable=False),
        sa.Column('source', sa.String(), nullable=False, server_default='website'),
        sa.Column('bumped_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_bumps_listing_id', 'bumps', ['listing_id'])
    op.create_index('ix_bumps_user_id', 'bumps', ['user_id'])
    op.create_index('ix_bumps_bumped_at', 'bumps', ['bumped_at'])

    op.create_table(
        'listing_analytics_events',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('listing_id', sa.String(), nullable=False),
        sa.Column('event_type', sa.String(), nullable=False),
        sa.Column('event_metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_listing_analytics_events_listing_id', 'listing_analytics_events', ['listing_id'])

    # Destinations
    op.create_table(
        'discord_bot_configs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('discord_server_id', sa.String(), nullable=False, unique=True),
        sa.Column('listing_channel_id', sa.String(), nullable=True),
        sa.Column('bump_channel_id', sa.String(), nullable=True),
        sa.Column('status_channel_id', sa.String(), nullable=True),
        sa.Column('admin_user_id', sa.String(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_discord_bot_configs_discord_server_id', 'discord_bot_configs', ['discord_server_id'])

    # Driver state
    op.create_table(
        'notification_watermarks',
        sa.Column('stream', sa.String(), primary_key=True),
        sa.Column('watermark', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'site_status_messages',
        sa.Column('destination_id', sa.String(), primary_key=True),
        sa.Column('channel_id', sa.String(), nullable=False),
        sa.Column('message_id', sa.String(), nullable=False),
        sa.Column('status_data', sa.JSON(), nullable=True),
        sa.Column('last_updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        'status_snapshots',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('overall', sa.String(), nullable=False),
        sa.Column('healthy_count', sa.Integer(), nullable=False),
        sa.Column('total_count', sa.Integer(), nullable=False),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_status_snapshots_checked_at', 'status_snapshots', ['checked_at'])


def downgrade() -> None:
    op.drop_table('status_snapshots')
    op.drop_table('site_status_messages')
    op.drop_table('notification_watermarks')
    op.drop_table('discord_bot_configs')
    op.drop_table('listing_analytics_events')
    op.drop_table('bumps')
    op.drop_table('listings')
    op.drop_table('auto_bump_settings')
    op.drop_table('profiles')
