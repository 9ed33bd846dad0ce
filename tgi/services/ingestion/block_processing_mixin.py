"""
Ingestion Pipeline Block Processing Mixin.

Provides ingestion of single blocks: missing ancestors are collected
into a batch, then the batch is committed parent-first in one
transaction, each block dispatched to the handler of its classification.
"""

from collections.abc import Awaitable, Callable

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.config.constants import COLOR_BLUE, COLOR_GRAY, COLOR_RED
from tgi.models import Block, Edge
from tgi.repositories.block_repository import BlockBase, BlockRepository
from tgi.repositories.chain_state_repository import ChainStateRepository
from tgi.repositories.edge_repository import EdgeRepository
from tgi.repositories.height_group_repository import HeightGroupRepository
from tgi.services.chain_state import Classification, ClassificationKind
from tgi.services.rpc_client import RpcBlock
from tgi.utils.exceptions import GapUnresolvableError

from .batch import Batch

BlockHandler = Callable[[AsyncSession, RpcBlock, Classification], Awaitable[None]]


class BlockProcessingMixin:
    """Mixin providing block ingestion functionality."""

    def _build_block_handlers(self) -> dict[ClassificationKind, BlockHandler]:
        return {
            ClassificationKind.STALE_DUPLICATE: self._handle_stale_duplicate,
            ClassificationKind.GAP: self._handle_gap,
            ClassificationKind.EXTENDS_TIP: self._handle_extends_tip,
            ClassificationKind.SIDE_BRANCH: self._handle_side_branch,
            ClassificationKind.ALTERS_SELECTED_TIP: self._handle_alters_selected_tip,
        }

    async def ingest_block(self, block: RpcBlock) -> ClassificationKind:
        """
        Ingest one block and its missing ancestors as one unit of work.

        Args:
            block: Block received from the node

        Returns:
            Classification of the block itself
        """
        async with self._lock:
            return await self._ingest_block(block)

    async def _ingest_block(self, block: RpcBlock) -> ClassificationKind:
        async def collect(session: AsyncSession) -> Batch:
            batch = Batch(
                self.tracker,
                self.rpc,
                max_missing=self.max_missing_dependencies,
                retry_delay=self.missing_block_retry_delay,
            )
            await batch.collect(block, session)
            return batch

        batch = await self._run_read(collect, f"collect ancestors of {block.hash}")

        ordered = batch.in_topological_order()

        if batch.missing_count:
            logger.warning(
                f"[Ingestion] Handling {batch.missing_count} missing dependencies "
                f"of block {block.hash}"
            )

        async def work(session: AsyncSession) -> ClassificationKind:
            kind = ClassificationKind.STALE_DUPLICATE
            for item in ordered:
                kind = await self._process_block(session, item)
            return kind

        return await self._run_unit(work, f"ingest block {block.hash}")

    async def _process_block(
        self, session: AsyncSession, block: RpcBlock
    ) -> ClassificationKind:
        classification = await self.tracker.classify(block, session)
        logger.debug(f"[Ingestion] Block {block.hash}: {classification.kind}")
        await self._block_handlers[classification.kind](session, block, classification)
        return classification.kind

    # ------------------------------------------------------------------
    # Handlers per classification
    # ------------------------------------------------------------------

    async def _handle_stale_duplicate(
        self, session: AsyncSession, block: RpcBlock, classification: Classification
    ) -> None:
        logger.debug(f"[Ingestion] Block {block.hash} already exists; not processed")

    async def _handle_gap(
        self, session: AsyncSession, block: RpcBlock, classification: Classification
    ) -> None:
        # Batches are collected before the transaction; a gap here means an
        # ancestor vanished between collection and commit
        raise GapUnresolvableError(block.hash, classification.missing_parents[0])

    async def _handle_extends_tip(
        self, session: AsyncSession, block: RpcBlock, classification: Classification
    ) -> None:
        entity = await self._insert_block(session, block, in_chain=True)
        await self._apply_merge_set_colors(session, entity)

        base = BlockBase.of(entity)
        self.tracker.set_selected_tip(block.hash, base)
        self.tracker.set_cursor(block.hash, base)
        await self._save_chain_state(session)

    async def _handle_side_branch(
        self, session: AsyncSession, block: RpcBlock, classification: Classification
    ) -> None:
        entity = await self._insert_block(session, block, in_chain=False)
        self.tracker.set_cursor(block.hash, BlockBase.of(entity))
        await self._save_chain_state(session)
        logger.info(f"[Ingestion] Block {block.hash} added on a side branch")

    async def _handle_alters_selected_tip(
        self, session: AsyncSession, block: RpcBlock, classification: Classification
    ) -> None:
        entity = await self._insert_block(session, block, in_chain=False)
        self.tracker.set_cursor(block.hash, BlockBase.of(entity))
        await self._reorganize(session, block.hash)
        await self._save_chain_state(session)

    # ------------------------------------------------------------------
    # Persistence helpers
    # ------------------------------------------------------------------

    async def _insert_block(
        self, session: AsyncSession, block: RpcBlock, in_chain: bool
    ) -> Block:
        """
        Insert a block with its layout, edges and merge sets.

        The height is one above the highest stored parent (0 without
        stored parents) and the block takes the next slot of its height
        group.
        """
        blocks = BlockRepository(session)
        height_groups = HeightGroupRepository(session)

        stored_parents, _ = await self.tracker.stored_parents(block, session)
        parents = dict(stored_parents)
        height = max((base.height for base in parents.values()), default=-1) + 1
        height_group_index = await height_groups.get_size(height)

        selected_parent = parents.get(block.effective_selected_parent)
        if block.is_header_only:
            logger.warning(
                f"[Ingestion] Block {block.hash} is header-only, merge sets unavailable"
            )

        merge_set_ids = await blocks.ids_by_hashes(
            block.merge_set_blues_hashes + block.merge_set_reds_hashes
        )

        entity = await blocks.create(
            block_hash=block.hash,
            timestamp=block.timestamp,
            parent_ids=[base.id for base in parents.values()],
            daa_score=block.daa_score,
            blue_score=block.blue_score,
            height=height,
            height_group_index=height_group_index,
            selected_parent_id=selected_parent.id if selected_parent else None,
            color=COLOR_GRAY,
            is_in_virtual_selected_parent_chain=in_chain,
            is_abandoned=False,
            merge_set_blue_ids=[
                merge_set_ids[h] for h in block.merge_set_blues_hashes if h in merge_set_ids
            ],
            merge_set_red_ids=[
                merge_set_ids[h] for h in block.merge_set_reds_hashes if h in merge_set_ids
            ],
        )
        await height_groups.set_size(height, height_group_index + 1)

        await EdgeRepository(session).add_if_missing([
            Edge(
                from_block_id=entity.id,
                to_block_id=parent.id,
                from_height=height,
                to_height=parent.height,
                from_height_group_index=height_group_index,
                to_height_group_index=parent.height_group_index,
            )
            for parent in parents.values()
        ])

        self.tracker.remember(block.hash, BlockBase.of(entity))
        return entity

    async def _apply_merge_set_colors(self, session: AsyncSession, chain_block: Block) -> None:
        """Color the merge set of a selected chain block."""
        blocks = BlockRepository(session)
        await blocks.set_color(chain_block.merge_set_blue_ids, COLOR_BLUE)
        await blocks.set_color(chain_block.merge_set_red_ids, COLOR_RED)

    async def _clear_merge_set_colors(self, session: AsyncSession, chain_block: Block) -> None:
        """Gray out the merge set of a block leaving the selected chain."""
        await BlockRepository(session).set_color(
            chain_block.merge_set_blue_ids + chain_block.merge_set_red_ids, COLOR_GRAY
        )

    async def _save_chain_state(self, session: AsyncSession) -> None:
        tip = self.tracker.selected_tip
        cursor = self.tracker.cursor
        if tip is None or cursor is None:
            return
        await ChainStateRepository(session).save(tip[0], tip[1], cursor[0], cursor[1])

    async def _is_stored(self, block_hash: str) -> bool:
        async def lookup(session: AsyncSession) -> bool:
            return await self.tracker.base_of(block_hash, session) is not None

        return await self._run_read(lookup, f"look up block {block_hash}")

