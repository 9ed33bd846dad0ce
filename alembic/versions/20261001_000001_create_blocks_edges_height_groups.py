"""create blocks, edges and height_groups tables

Revision ID: 20261001_000001
Revises: 
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261001_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create blocks, edges and height_groups tables."""
    op.create_table(
        'blocks',
        sa.Column('id', sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column('block_hash', sa.String(64), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('parent_ids', sa.JSON(), nullable=False),
        sa.Column('selected_parent_id', sa.BigInteger(), nullable=True),
        sa.Column('daa_score', sa.BigInteger(), nullable=False),
        sa.Column('blue_score', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('height', sa.BigInteger(), nullable=False),
        sa.Column('height_group_index', sa.Integer(), nullable=False),
        sa.Column('color', sa.String(8), nullable=False, server_default='gray'),
        sa.Column(
            'is_in_virtual_selected_parent_chain',
            sa.Boolean(),
            nullable=False,
            server_default=sa.false(),
        ),
        sa.Column('is_abandoned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('merge_set_red_ids', sa.JSON(), nullable=False),
        sa.Column('merge_set_blue_ids', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # Indexes
    op.create_index('ix_blocks_block_hash', 'blocks', ['block_hash'], unique=True)
    op.create_index('ix_blocks_selected_parent_id', 'blocks', ['selected_parent_id'])
    op.create_index('ix_blocks_daa_score', 'blocks', ['daa_score'])
    op.create_index('ix_blocks_height', 'blocks', ['height'])
    op.create_index(
        'ix_blocks_is_in_virtual_selected_parent_chain',
        'blocks',
        ['is_in_virtual_selected_parent_chain'],
    )

    op.create_table(
        'edges',
        sa.Column('from_block_id', sa.BigInteger(), nullable=False),
        sa.Column('to_block_id', sa.BigInteger(), nullable=False),
        sa.Column('from_height', sa.BigInteger(), nullable=False),
        sa.Column('to_height', sa.BigInteger(), nullable=False),
        sa.Column('from_height_group_index', sa.Integer(), nullable=False),
        sa.Column('to_height_group_index', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('from_block_id', 'to_block_id'),
    )
    op.create_index('ix_edges_to_block_id', 'edges', ['to_block_id'])
    op.create_index('ix_edges_from_height', 'edges', ['from_height'])
    op.create_index('ix_edges_to_height', 'edges', ['to_height'])

    op.create_table(
        'height_groups',
        sa.Column('height', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('height'),
    )


def downgrade() -> None:
    """Drop blocks, edges and height_groups tables."""
    op.drop_table('height_groups')
    op.drop_index('ix_edges_to_height', table_name='edges')
    op.drop_index('ix_edges_from_height', table_name='edges')
    op.drop_index('ix_edges_to_block_id', table_name='edges')
    op.drop_table('edges')
    op.drop_index('ix_blocks_is_in_virtual_selected_parent_chain', table_name='blocks')
    op.drop_index('ix_blocks_height', table_name='blocks')
    op.drop_index('ix_blocks_daa_score', table_name='blocks')
    op.drop_index('ix_blocks_selected_parent_id', table_name='blocks')
    op.drop_index('ix_blocks_block_hash', table_name='blocks')
    op.drop_table('blocks')
