"""create app_config singleton table

Revision ID: 20261001_000002
Revises: 20261001_000001
Create Date: 2026-10-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261001_000002'
down_revision: Union[str, None] = '20261001_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create app_config table; the CHECK on the boolean key allows one row."""
    op.create_table(
        'app_config',
        sa.Column('id', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('tondid_version', sa.Text(), nullable=False),
        sa.Column('processing_version', sa.Text(), nullable=False),
        sa.Column('network', sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('id', name='unique_row'),
    )


def downgrade() -> None:
    """Drop app_config table."""
    op.drop_table('app_config')
