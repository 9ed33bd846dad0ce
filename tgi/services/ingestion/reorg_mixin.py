"""
Ingestion Pipeline Reorg Mixin.

Provides selected tip switches: walk back from both tips to the common
ancestor, tombstone the abandoned branch and replay chain-derived state
for the adopted branch.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models import Block, ReorgEvent
from tgi.repositories.block_repository import BlockBase, BlockRepository
from tgi.repositories.reorg_event_repository import ReorgEventRepository
from tgi.utils.exceptions import ChainIntegrityError


class ReorgMixin:
    """Mixin providing reorg functionality."""

    async def handle_reorg(self, new_tip: str) -> ReorgEvent | None:
        """
        Make ``new_tip`` the selected tip.

        The block is ingested first when it is not stored yet. The switch
        itself runs in one transaction.

        Args:
            new_tip: Hash of the new selected tip

        Returns:
            The recorded reorg event, or None if the tip did not change
        """
        async with self._lock:
            return await self._handle_reorg(new_tip)

    async def _handle_reorg(self, new_tip: str) -> ReorgEvent | None:
        if self.tracker.committed_tip_hash == new_tip:
            return None

        if not await self._is_stored(new_tip):
            await self._ingest_block(await self.rpc.get_block(new_tip))
            if self.tracker.committed_tip_hash == new_tip:
                return None

        async def work(session: AsyncSession) -> ReorgEvent | None:
            event = await self._reorganize(session, new_tip)
            await self._save_chain_state(session)
            return event

        return await self._run_unit(work, f"reorg to {new_tip}")

    async def _reorganize(self, session: AsyncSession, new_tip: str) -> ReorgEvent | None:
        """
        Switch the selected chain to end at ``new_tip`` inside ``session``.

        Raises:
            ChainIntegrityError: If the two chains share no stored ancestor
        """
        blocks = BlockRepository(session)
        new_tip_block = await blocks.get_by_hash(new_tip)
        if new_tip_block is None:
            raise ChainIntegrityError(f"Reorg target {new_tip} is not stored")

        current = self.tracker.selected_tip
        if current is None:
            await blocks.set_chain_membership([new_tip_block.id], True)
            await self._apply_merge_set_colors(session, new_tip_block)
            self.tracker.set_selected_tip(new_tip, BlockBase.of(new_tip_block))
            return None

        old_tip = current[0]
        if old_tip == new_tip:
            return None

        old_block = await blocks.get_by_hash(old_tip)
        if old_block is None:
            raise ChainIntegrityError(f"Selected tip {old_tip} is not stored")

        # Heights strictly decrease along selected parents
        abandoned: list[Block] = []
        adopted: list[Block] = []
        old_cursor, new_cursor = old_block, new_tip_block
        while old_cursor.id != new_cursor.id:
            if old_cursor.height >= new_cursor.height:
                abandoned.append(old_cursor)
                old_cursor = await self._selected_parent(blocks, old_cursor)
            else:
                adopted.append(new_cursor)
                new_cursor = await self._selected_parent(blocks, new_cursor)
        common_ancestor = old_cursor

        for block in abandoned:
            await self._clear_merge_set_colors(session, block)
        await blocks.set_chain_membership([b.id for b in abandoned], False)

        await blocks.set_chain_membership([b.id for b in adopted], True)
        for block in reversed(adopted):
            await self._apply_merge_set_colors(session, block)

        self.tracker.set_selected_tip(new_tip, BlockBase.of(new_tip_block))

        event = await ReorgEventRepository(session).create(
            old_tip_hash=old_tip,
            new_tip_hash=new_tip,
            common_ancestor_hash=common_ancestor.block_hash,
            abandoned_count=len(abandoned),
            adopted_count=len(adopted),
        )

        logger.warning(
            f"[Reorg] Selected tip {old_tip} -> {new_tip}: "
            f"{len(abandoned)} abandoned, {len(adopted)} adopted, "
            f"common ancestor {common_ancestor.block_hash}"
        )
        return event

    async def _selected_parent(self, blocks: BlockRepository, block: Block) -> Block:
        if block.selected_parent_id is None:
            raise ChainIntegrityError(
                f"Block {block.block_hash} has no stored selected parent; "
                f"no common ancestor found"
            )
        parent = await blocks.get_by_id(block.selected_parent_id)
        if parent is None:
            raise ChainIntegrityError(
                f"Selected parent {block.selected_parent_id} of {block.block_hash} is missing"
            )
        return parent
