"""
Block model.

One row per block ingested from the node.
"""

from datetime import UTC, datetime

from sqlalchemy import JSON, BigInteger, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tgi.config.constants import COLOR_GRAY
from tgi.models.base import Base, BigIntegerPK


class Block(Base):
    """
    Indexed block.

    Parent, merge set and selected parent references are stored as
    database ids of other blocks. Parents pruned by the node below the
    sync root are not referenced.

    Selected chain membership:
    - is_in_virtual_selected_parent_chain: block is on the selected chain
    - is_abandoned: block left the selected chain through a reorg
    """

    __tablename__ = "blocks"

    # Primary key
    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Identification
    block_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, index=True
    )
    timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # DAG structure
    parent_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    selected_parent_id: Mapped[int | None] = mapped_column(
        BigInteger, nullable=True, index=True
    )

    # Scores reported by the node
    daa_score: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    blue_score: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    # Layout (derived in causal order)
    height: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    height_group_index: Mapped[int] = mapped_column(Integer, nullable=False)

    # Selected chain state
    color: Mapped[str] = mapped_column(String(8), nullable=False, default=COLOR_GRAY)
    is_in_virtual_selected_parent_chain: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, index=True
    )
    is_abandoned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Merge sets
    merge_set_red_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    merge_set_blue_ids: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Block(id={self.id}, hash={self.block_hash}, height={self.height})>"
