"""
Read-side queries.

Queries used by the external API tier. All methods read the database
only; nothing here talks to the node.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models import Block, ReorgEvent
from tgi.repositories.app_config_repository import AppConfigRepository
from tgi.repositories.block_repository import BlockRepository
from tgi.repositories.chain_state_repository import ChainStateRepository
from tgi.repositories.reorg_event_repository import ReorgEventRepository


class IndexQueries:
    """Query methods over the indexed DAG."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.block_repo = BlockRepository(session)

    async def blocks_by_height_range(self, start_height: int, end_height: int) -> list[Block]:
        """
        Get blocks with start_height <= height < end_height.

        Args:
            start_height: Lowest height (inclusive)
            end_height: Highest height (exclusive)

        Returns:
            Blocks ordered by height, then height group index
        """
        if end_height <= start_height:
            return []
        return await self.block_repo.find_by_height_range(start_height, end_height)

    async def block_by_hash(self, block_hash: str) -> Block | None:
        return await self.block_repo.get_by_hash(block_hash)

    async def selected_tip(self) -> Block | None:
        """Get the selected tip recorded in the chain state."""
        state = await ChainStateRepository(self.session).get()
        if state is None:
            return None
        return await self.block_repo.get_by_hash(state.selected_tip_hash)

    async def selected_chain(self, limit: int = 100) -> list[Block]:
        """Get the newest selected chain blocks, tip first."""
        return await self.block_repo.find_chain(limit)

    async def recent_reorgs(self, limit: int = 10) -> list[ReorgEvent]:
        return await ReorgEventRepository(self.session).latest(limit)

    async def app_config(self) -> dict[str, str] | None:
        """
        Get the app_config row as the web model sees it.

        Returns:
            Dict with tondidVersion, processingVersion and network,
            or None before the first registration
        """
        config = await AppConfigRepository(self.session).get()
        if config is None:
            return None
        return {
            "tondidVersion": config.tondid_version,
            "processingVersion": config.processing_version,
            "network": config.network,
        }
