"""
Height group repository.

Data access layer for per-height block counters.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.height_group import HeightGroup
from tgi.repositories.base import BaseRepository


class HeightGroupRepository(BaseRepository[HeightGroup]):
    """Repository for height groups."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(HeightGroup, session)

    async def get_size(self, height: int) -> int:
        """Number of blocks stored at a height (0 when none)."""
        group = await self.get_by_id(height)
        return group.size if group else 0

    async def set_size(self, height: int, size: int) -> None:
        """Insert or update the size of a height group."""
        group = await self.get_by_id(height)
        if group is None:
            self.session.add(HeightGroup(height=height, size=size))
        else:
            group.size = size
        await self.session.flush()
