"""
AppConfig model.

Singleton row with the versions of the node and of the processing tier.
"""

from sqlalchemy import Boolean, CheckConstraint, Text
from sqlalchemy.orm import Mapped, mapped_column

from tgi.models.base import Base


class AppConfig(Base):
    """
    Application configuration singleton.

    The boolean primary key can only ever be TRUE (CHECK constraint),
    so the table holds at most one row regardless of concurrent writers.
    """

    __tablename__ = "app_config"
    __table_args__ = (CheckConstraint("id", name="unique_row"),)

    id: Mapped[bool] = mapped_column(Boolean, primary_key=True, default=True)
    tondid_version: Mapped[str] = mapped_column(Text, nullable=False)
    processing_version: Mapped[str] = mapped_column(Text, nullable=False)
    network: Mapped[str] = mapped_column(Text, nullable=False)
