"""Add bump_cooldowns for atomic manual bump claims.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'bump_cooldowns',
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('listing_id', sa.String(), nullable=False),
        sa.Column('last_bumped_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('user_id', 'listing_id'),
        sa.ForeignKeyConstraint(['listing_id'], ['listings.id'], ondelete='CASCADE'),
    )

    # Seed from the bump log so running cooldowns survive the upgrade
    op.execute(
        """
        INSERT INTO bump_cooldowns (user_id, listing_id, last_bumped_at)
        SELECT user_id, listing_id, MAX(bumped_at)
        FROM bumps
        WHERE bump_type = 'manual'
        GROUP BY user_id, listing_id
        """
    )


def downgrade() -> None:
    op.drop_table('bump_cooldowns')
