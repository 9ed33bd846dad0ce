"""
Ingestion Pipeline Sync Mixin.

Provides the ingestion lifecycle and the backfill (resync) of the
database from the node, starting at the sync cursor.
"""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.config.constants import (
    RESYNC_CHAIN_RECONCILE_THRESHOLD,
    RESYNC_NEAR_TIP_THRESHOLD,
    RESYNC_PROGRESS_LOG_EVERY,
    RESYNC_SAFETY_MARGIN,
)
from tgi.repositories.block_repository import BlockBase, BlockRepository
from tgi.repositories.chain_state_repository import ChainStateRepository
from tgi.repositories.edge_repository import EdgeRepository
from tgi.repositories.height_group_repository import HeightGroupRepository
from tgi.repositories.reorg_event_repository import ReorgEventRepository
from tgi.services.chain_state import ResumePoint


class SyncMixin:
    """Mixin providing sync lifecycle functionality."""

    async def sync(self) -> None:
        """
        Run ingestion until ``stop()``.

        Order matters: notifications are subscribed before the backfill
        so nothing published meanwhile is lost; they are buffered and
        processed once the backfill finished.
        """
        await self.update_node_version()
        await self.register_app_config()
        await self._wait_for_synced_node()
        if self.is_stopping:
            return

        await self.subscribe()
        await self.resync_database()
        await self.process_notifications()
        logger.info("[Sync] Ingestion stopped")

    def stop(self) -> None:
        """
        Request a graceful shutdown.

        The unit of work in flight completes (or rolls back) and no new
        one starts.
        """
        if self.is_stopping:
            return
        logger.info("[Sync] Stop requested, finishing the current unit of work")
        self._stopping.set()
        self._wake_consumer()

    async def _wait_for_synced_node(self) -> None:
        cycle = 0
        while not self.is_stopping:
            info = await self.rpc.get_info()
            if info.is_synced:
                logger.info("[Sync] Node is synced")
                return
            if cycle == 0:
                logger.info("[Sync] Waiting for the node to finish IBD...")
            cycle += 1
            try:
                await asyncio.wait_for(
                    self._stopping.wait(), timeout=self.settings.node_sync_poll_interval
                )
            except TimeoutError:
                pass

    async def resync_database(self) -> None:
        """
        Backfill the database from the node.

        Ensures the node's pruning point is stored as the root, then
        ingests every block from the sync cursor towards the tips and
        reconciles the selected chain with the node's sink.
        """
        async with self._lock:
            self.syncing = True
            try:
                await self._resync_database()
            finally:
                self.syncing = False

    async def _resync_database(self) -> None:
        logger.info("[Sync] Resyncing database")

        dag_info = await self.rpc.get_block_dag_info()
        root_hash = dag_info.pruning_point_hash
        root = await self.rpc.get_block(root_hash)

        async def read_root(session: AsyncSession) -> BlockBase | None:
            return await BlockRepository(session).get_base_by_hash(root_hash)

        stored_root = await self._run_read(read_root, "read pruning point")

        clear = self.settings.clear_db and not self._database_cleared
        keep_database = stored_root is not None and not clear

        if keep_database:
            logger.info(f"[Sync] Pruning point {root_hash} already in the database, kept")

            async def load_state(session: AsyncSession) -> ResumePoint:
                return await self.tracker.load(session, min_height=stored_root.height)

            resume = await self._run_read(load_state, "load chain state")
        else:
            await self._run_unit(self._clear_database, "clear database")
            self._database_cleared = True
            self.tracker.reset()
            logger.info("[Sync] Database cleared")
            resume = ResumePoint()

        self.tracker.set_root(root_hash, root.daa_score)
        for parent_hash in root.parent_hashes:
            self.tracker.mark_external(parent_hash)

        if not keep_database:
            await self._ingest_block(root)
            logger.info(f"[Sync] Pruning point {root_hash} has been added to the database")

        await self._backfill(root_hash, resume, skip_stored_prefix=keep_database)
        logger.info("[Sync] Finished resyncing database")

    async def _clear_database(self, session: AsyncSession) -> None:
        for repository in (
            EdgeRepository(session),
            HeightGroupRepository(session),
            ChainStateRepository(session),
            ReorgEventRepository(session),
            BlockRepository(session),
        ):
            await repository.delete_all()

    async def _backfill(
        self, low_hash: str, resume: ResumePoint, skip_stored_prefix: bool
    ) -> None:
        cycle = 0
        first = True
        while not self.is_stopping:
            logger.info(f"[Sync] Cycle {cycle} - Loading node blocks from {low_hash}")
            hashes = await self.rpc.get_blocks(low_hash)

            start_index = 0
            if first and skip_stored_prefix and not self.settings.resync:
                start_index = await self._find_start_index(hashes, resume)
                logger.info(
                    f"[Sync] Cycle {cycle} - Starting at block {start_index} of {len(hashes)}"
                )
            first = False

            to_add = hashes[start_index:]
            for added, block_hash in enumerate(to_add, start=1):
                if self.is_stopping:
                    return
                if not await self._is_stored(block_hash):
                    await self._ingest_block(await self.rpc.get_block(block_hash))
                if added % RESYNC_PROGRESS_LOG_EVERY == 0 or added == len(to_add):
                    logger.info(f"[Sync] Cycle {cycle} - Added {added}/{len(to_add)} blocks")

            if len(hashes) < RESYNC_CHAIN_RECONCILE_THRESHOLD:
                await self._reconcile_selected_chain()
                cycle += 1

            if cycle > 1 and len(hashes) < RESYNC_NEAR_TIP_THRESHOLD:
                logger.info(
                    f"[Sync] Cycle {cycle} - Almost at tip with last {len(hashes)} "
                    f"blocks added, stopping resync"
                )
                return

            if hashes:
                low_hash = hashes[-1]

    async def _find_start_index(self, hashes: list[str], resume: ResumePoint) -> int:
        """
        Index of the first hash to ingest.

        Starts from the sync cursor when the node lists it, otherwise from
        the last stored hash, and always backs off by a safety margin:
        blocks ordered before the cursor may never have been stored.
        Hashes already stored are skipped later without an RPC call.
        """
        if resume.cursor_hash in hashes:
            candidate = hashes.index(resume.cursor_hash) + 1
        else:
            async def search(session: AsyncSession) -> int:
                return await BlockRepository(session).find_latest_stored_index(hashes)

            candidate = await self._run_read(search, "find latest stored block") + 1
        return max(candidate - RESYNC_SAFETY_MARGIN, 0)


    async def _reconcile_selected_chain(self) -> None:
        """Align the selected tip with the node's sink."""
        sink = await self.rpc.get_sink()
        if sink != self.tracker.committed_tip_hash:
            logger.info(f"[Sync] Reconciling selected tip with node sink {sink}")
            await self._handle_reorg(sink)
