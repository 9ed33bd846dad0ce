"""
Chain state model.

Singleton row with the selected tip and the sync cursor.
"""

from datetime import UTC, datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from tgi.models.base import Base


class ChainState(Base):
    """
    Ingestion progress.

    Written in the same transaction as the blocks it describes:
    - selected tip: head of the branch considered canonical
    - sync cursor: last block durably committed
    """

    __tablename__ = "chain_state"
    __table_args__ = (CheckConstraint("id", name="chain_state_unique_row"),)

    id: Mapped[bool] = mapped_column(Boolean, primary_key=True, default=True)

    # Selected tip
    selected_tip_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    selected_tip_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    # Sync cursor
    cursor_block_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    cursor_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    cursor_height: Mapped[int] = mapped_column(BigInteger, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )
