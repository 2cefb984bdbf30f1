"""Add quota ledger and usage history tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_metering_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create user_usage and usage_history."""

    op.create_table(
        'user_usage',
        sa.Column('user_id', sa.String(64), primary_key=True),
        sa.Column('tokens_used', sa.Integer, server_default='0', nullable=False),
        sa.Column('tokens_limit', sa.Integer, server_default='5000', nullable=False),
        sa.Column('plan', sa.String(20), server_default='trial', nullable=False),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.CheckConstraint('tokens_used >= 0', name='ck_user_usage_tokens_used_non_negative'),
        sa.CheckConstraint('tokens_limit >= 0', name='ck_user_usage_tokens_limit_non_negative'),
    )

    op.create_table(
        'usage_history',
        sa.Column('id', sa.Uuid, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('tokens_used', sa.Integer, nullable=False),
        sa.Column('action', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_usage_history_user_id', 'usage_history', ['user_id'])
    op.create_index('ix_usage_history_created_at', 'usage_history', ['created_at'])

    if op.get_bind().dialect.name != 'postgresql':
        return

    # RLS: users read their own rows, the service role writes
    for table in ('user_usage', 'usage_history'):
        op.execute(f'ALTER TABLE {table} ENABLE ROW LEVEL SECURITY')
        op.execute(f"""
            CREATE POLICY "Users can view own {table}"
            ON {table} FOR SELECT
            TO authenticated
            USING (user_id = auth.uid()::text)
        """)
        op.execute(f"""
            CREATE POLICY "Service role manages {table}"
            ON {table} FOR ALL
            TO service_role
            USING (true)
            WITH CHECK (true)
        """)


def downgrade() -> None:
    """Drop user_usage and usage_history."""

    if op.get_bind().dialect.name == 'postgresql':
        for table in ('user_usage', 'usage_history'):
            op.execute(f'DROP POLICY IF EXISTS "Users can view own {table}" ON {table}')
            op.execute(f'DROP POLICY IF EXISTS "Service role manages {table}" ON {table}')

    op.drop_index('ix_usage_history_created_at', table_name='usage_history')
    op.drop_index('ix_usage_history_user_id', table_name='usage_history')
    op.drop_table('usage_history')
    op.drop_table('user_usage')
