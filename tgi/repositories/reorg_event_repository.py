"""
Reorg event repository.

Data access layer for the reorg audit log.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.reorg_event import ReorgEvent
from tgi.repositories.base import BaseRepository


class ReorgEventRepository(BaseRepository[ReorgEvent]):
    """Repository for reorg events."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(ReorgEvent, session)

    async def latest(self, limit: int = 10) -> list[ReorgEvent]:
        """Get the most recent reorg events, newest first."""
        result = await self.session.execute(
            select(ReorgEvent).order_by(ReorgEvent.id.desc()).limit(limit)
        )
        return list(result.scalars().all())
