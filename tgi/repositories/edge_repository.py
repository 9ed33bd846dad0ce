"""
Edge repository.

Data access layer for child -> parent links.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.edge import Edge
from tgi.repositories.base import BaseRepository


class EdgeRepository(BaseRepository[Edge]):
    """Repository for block edges."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Edge, session)

    async def add_if_missing(self, edges: list[Edge]) -> int:
        """
        Insert edges that are not stored yet.

        Args:
            edges: Edge entities (not yet added to the session)

        Returns:
            Number of inserted edges
        """
        inserted = 0
        for edge in edges:
            key = (edge.from_block_id, edge.to_block_id)
            if await self.session.get(Edge, key) is not None:
                continue
            self.session.add(edge)
            inserted += 1
        if inserted:
            await self.session.flush()
        return inserted
