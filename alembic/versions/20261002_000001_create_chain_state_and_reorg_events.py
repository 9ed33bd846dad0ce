"""create chain_state singleton and reorg_events tables

Revision ID: 20261002_000001
Revises: 20261001_000002
Create Date: 2026-10-02

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261002_000001'
down_revision: Union[str, None] = '20261001_000002'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create chain_state and reorg_events tables."""
    op.create_table(
        'chain_state',
        sa.Column('id', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('selected_tip_id', sa.BigInteger(), nullable=False),
        sa.Column('selected_tip_hash', sa.String(64), nullable=False),
        sa.Column('cursor_block_id', sa.BigInteger(), nullable=False),
        sa.Column('cursor_hash', sa.String(64), nullable=False),
        sa.Column('cursor_height', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('id', name='chain_state_unique_row'),
    )

    op.create_table(
        'reorg_events',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('old_tip_hash', sa.String(64), nullable=False),
        sa.Column('new_tip_hash', sa.String(64), nullable=False),
        sa.Column('common_ancestor_hash', sa.String(64), nullable=False),
        sa.Column('abandoned_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('adopted_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_reorg_events_new_tip_hash', 'reorg_events', ['new_tip_hash'])


def downgrade() -> None:
    """Drop chain_state and reorg_events tables."""
    op.drop_index('ix_reorg_events_new_tip_hash', table_name='reorg_events')
    op.drop_table('reorg_events')
    op.drop_table('chain_state')
