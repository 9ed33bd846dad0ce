"""
Chain state repository.

Data access layer for the selected tip and sync cursor singleton.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.chain_state import ChainState
from tgi.repositories.base import BaseRepository
from tgi.repositories.block_repository import BlockBase


class ChainStateRepository(BaseRepository[ChainState]):
    """Repository for the chain_state singleton row."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(ChainState, session)

    async def get(self) -> ChainState | None:
        """Get the singleton row, if created."""
        return await self.get_by_id(True)

    async def save(
        self,
        selected_tip_hash: str,
        selected_tip: BlockBase,
        cursor_hash: str,
        cursor: BlockBase,
    ) -> ChainState:
        """
        Record the selected tip and the sync cursor.

        Args:
            selected_tip_hash: Hash of the head of the selected chain
            selected_tip: Its stored base
            cursor_hash: Hash of the last block committed
            cursor: Its stored base

        Returns:
            The stored row
        """
        state = await self.get()
        if state is None:
            state = ChainState(id=True)
            self.session.add(state)

        state.selected_tip_id = selected_tip.id
        state.selected_tip_hash = selected_tip_hash
        state.cursor_block_id = cursor.id
        state.cursor_hash = cursor_hash
        state.cursor_height = cursor.height

        await self.session.flush()
        return state
