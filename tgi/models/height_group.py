"""
Height group model.

Number of blocks stored at each height.
"""

from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import Mapped, mapped_column

from tgi.models.base import Base


class HeightGroup(Base):
    """Running count of blocks at a height."""

    __tablename__ = "height_groups"

    height: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
