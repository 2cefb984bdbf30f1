"""Add subscriptions table

Revision ID: 0002
Revises: 0001_metering_tables
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002_add_subscriptions'
down_revision: Union[str, None] = '0001_metering_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscriptions table for Stripe subscription management."""

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, unique=True, index=True),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255), unique=True, index=True),
        sa.Column('stripe_subscription_id', sa.String(255), unique=True, index=True),

        # Subscription details
        sa.Column('plan', sa.String(20), server_default='trial', nullable=False),
        sa.Column('status', sa.String(20), server_default='incomplete', nullable=False),

        # Billing period dates
        sa.Column('current_period_start', sa.DateTime(timezone=True)),
        sa.Column('current_period_end', sa.DateTime(timezone=True)),
        sa.Column('cancel_at_period_end', sa.Boolean, server_default=sa.false(), nullable=False),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Create index for status queries
    op.create_index(
        'ix_subscriptions_plan_status',
        'subscriptions',
        ['plan', 'status']
    )

    if op.get_bind().dialect.name != 'postgresql':
        return

    # Enable RLS
    op.execute('ALTER TABLE subscriptions ENABLE ROW LEVEL SECURITY')

    # RLS Policy: Users can only see their own subscription
    op.execute("""
        CREATE POLICY "Users can view own subscription"
        ON subscriptions FOR SELECT
        TO authenticated
        USING (user_id = auth.uid()::text)
    """)

    # RLS Policy: Service role can manage all subscriptions (for webhooks)
    op.execute("""
        CREATE POLICY "Service role manages subscriptions"
        ON subscriptions FOR ALL
        TO service_role
        USING (true)
        WITH CHECK (true)
    """)


def downgrade() -> None:
    """Drop subscriptions table."""

    if op.get_bind().dialect.name == 'postgresql':
        op.execute('DROP POLICY IF EXISTS "Users can view own subscription" ON subscriptions')
        op.execute('DROP POLICY IF EXISTS "Service role manages subscriptions" ON subscriptions')

    op.drop_index('ix_subscriptions_plan_status', table_name='subscriptions')
    op.drop_table('subscriptions')
