"""
Reorg event model.

Audit log of selected tip switches.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from tgi.models.base import Base, BigIntegerPK


class ReorgEvent(Base):
    """One selected tip switch and its extent."""

    __tablename__ = "reorg_events"

    id: Mapped[int] = mapped_column(BigIntegerPK, primary_key=True, autoincrement=True)

    old_tip_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    new_tip_hash: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    common_ancestor_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    abandoned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    adopted_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
