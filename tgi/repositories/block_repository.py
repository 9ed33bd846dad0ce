"""
Block repository.

Data access layer for indexed blocks.
"""

from collections.abc import Sequence
from typing import NamedTuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.block import Block
from tgi.repositories.base import BaseRepository


class BlockBase(NamedTuple):
    """Minimal block facts needed for classification and layout."""

    id: int
    height: int
    height_group_index: int
    blue_score: int

    @classmethod
    def of(cls, block: Block) -> "BlockBase":
        return cls(block.id, block.height, block.height_group_index, block.blue_score)


class BlockRepository(BaseRepository[Block]):
    """Repository for indexed blocks."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(Block, session)

    async def get_by_hash(self, block_hash: str) -> Block | None:
        """
        Get block by hash.

        Args:
            block_hash: Block hash

        Returns:
            Block or None
        """
        return await self.get_by(block_hash=block_hash)

    async def get_base_by_hash(self, block_hash: str) -> BlockBase | None:
        """
        Get id, height and blue score of a block without loading the row.

        Args:
            block_hash: Block hash

        Returns:
            BlockBase or None if the block is not stored
        """
        result = await self.session.execute(
            select(Block.id, Block.height, Block.height_group_index, Block.blue_score)
            .where(Block.block_hash == block_hash)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return BlockBase(
            id=row.id,
            height=row.height,
            height_group_index=row.height_group_index,
            blue_score=row.blue_score,
        )

    async def exists(self, block_hash: str) -> bool:
        """Check if a block is stored."""
        result = await self.session.execute(
            select(Block.id).where(Block.block_hash == block_hash).limit(1)
        )
        return result.scalar() is not None

    async def ids_by_hashes(self, block_hashes: Sequence[str]) -> dict[str, int]:
        """
        Map hashes to ids for the stored subset of ``block_hashes``.

        Args:
            block_hashes: Block hashes

        Returns:
            Dict of hash -> id; unknown hashes are absent
        """
        if not block_hashes:
            return {}
        result = await self.session.execute(
            select(Block.block_hash, Block.id)
            .where(Block.block_hash.in_(list(block_hashes)))
        )
        return {row.block_hash: row.id for row in result}

    async def set_chain_membership(
        self, block_ids: Sequence[int], in_chain: bool
    ) -> None:
        """
        Move blocks onto or off the selected chain.

        Blocks leaving the chain are tombstoned as abandoned; blocks
        (re)joining it lose the tombstone.

        Args:
            block_ids: Block ids
            in_chain: New membership
        """
        if not block_ids:
            return
        await self.session.execute(
            update(Block)
            .where(Block.id.in_(list(block_ids)))
            .values(
                is_in_virtual_selected_parent_chain=in_chain,
                is_abandoned=not in_chain,
            )
        )

    async def set_color(self, block_ids: Sequence[int], color: str) -> None:
        """Set the merge set color of blocks."""
        if not block_ids:
            return
        await self.session.execute(
            update(Block).where(Block.id.in_(list(block_ids))).values(color=color)
        )

    async def find_latest_stored_index(self, block_hashes: Sequence[str]) -> int:
        """
        Binary search for the last stored hash.

        The hashes are ordered from oldest to latest and stored blocks form
        a prefix of the list.

        Args:
            block_hashes: Hashes ordered from oldest to latest

        Returns:
            Index of the last stored hash (0 when none past the first)
        """
        low, high = 0, len(block_hashes)
        while high - low > 1:
            cur = (high + low) // 2
            if await self.exists(block_hashes[cur]):
                low = cur
            else:
                high = cur
        return low

    async def load_bases(self, min_height: int) -> list[tuple[str, BlockBase]]:
        """
        Load bases of all blocks at or above a height, for cache warmup.

        Args:
            min_height: Lowest height to load

        Returns:
            List of (hash, BlockBase)
        """
        result = await self.session.execute(
            select(
                Block.block_hash,
                Block.id,
                Block.height,
                Block.height_group_index,
                Block.blue_score,
            )
            .where(Block.height >= min_height)
            .order_by(Block.id)
        )
        return [
            (row.block_hash, BlockBase(row.id, row.height, row.height_group_index, row.blue_score))
            for row in result
        ]

    async def find_by_height_range(
        self, start_height: int, end_height: int
    ) -> list[Block]:
        """
        Get blocks with start_height <= height < end_height.

        Returns:
            Blocks ordered by height, then position in the height group
        """
        result = await self.session.execute(
            select(Block)
            .where(Block.height >= start_height, Block.height < end_height)
            .order_by(Block.height, Block.height_group_index)
        )
        return list(result.scalars().all())

    async def find_chain(self, limit: int) -> list[Block]:
        """Get the newest selected chain blocks, highest first."""
        result = await self.session.execute(
            select(Block)
            .where(Block.is_in_virtual_selected_parent_chain.is_(True))
            .order_by(Block.height.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
