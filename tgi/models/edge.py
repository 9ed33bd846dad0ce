"""
Edge model.

Child -> parent links between stored blocks, with the layout
coordinates of both ends.
"""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from tgi.models.base import Base


class Edge(Base):
    """Link from a block to one of its stored parents."""

    __tablename__ = "edges"

    from_block_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    to_block_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, index=True)
    from_height: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    to_height: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    from_height_group_index: Mapped[int] = mapped_column(Integer, nullable=False)
    to_height_group_index: Mapped[int] = mapped_column(Integer, nullable=False)
