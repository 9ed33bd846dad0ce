"""
Ingestion Pipeline Notifications Mixin.

Provides node notification handling. Handlers only enqueue; a single
consumer processes the queue in arrival order under the writer lock.
"""

from loguru import logger

from tgi.services.rpc_client import BlockAdded, RpcError, VirtualChainChanged

# Queue markers
_RESYNC = "resync"
_WAKE = "wake"


class NotificationsMixin:
    """Mixin providing notification functionality."""

    async def subscribe(self) -> None:
        """Subscribe to node notifications and reconnect events."""
        await self.rpc.subscribe_block_added(self._enqueue)
        await self.rpc.subscribe_virtual_chain_changed(self._enqueue)
        self.rpc.add_reconnect_handler(self._on_reconnected)

    def _enqueue(self, notification: BlockAdded | VirtualChainChanged) -> None:
        self._queue.put_nowait(notification)

    def _on_reconnected(self) -> None:
        logger.info("[Notifications] Node reconnected, scheduling resync")
        self._queue.put_nowait(_RESYNC)

    def _wake_consumer(self) -> None:
        self._queue.put_nowait(_WAKE)

    async def wait_until_idle(self) -> None:
        """Wait until every queued notification was processed."""
        await self._queue.join()

    async def process_notifications(self) -> None:
        """Consume queued notifications until ``stop()``."""
        logger.info("[Notifications] Processing notifications")
        while not self.is_stopping:
            item = await self._queue.get()
            try:
                if item == _WAKE:
                    continue
                await self._dispatch(item)
            finally:
                self._queue.task_done()

    async def _dispatch(self, item: object) -> None:
        try:
            if item == _RESYNC:
                await self._resync_after_reconnect()
            elif isinstance(item, BlockAdded):
                await self.ingest_block(item.block)
            elif isinstance(item, VirtualChainChanged):
                await self.handle_virtual_chain_changed(item)
            else:
                logger.warning(f"[Notifications] Unknown queue item: {item!r}")
        except RpcError as e:
            logger.error(f"[Notifications] Failed to process {type(item).__name__}: {e}")

    async def _resync_after_reconnect(self) -> None:
        await self.update_node_version()
        await self.register_app_config()
        await self.resync_database()

    async def handle_virtual_chain_changed(self, notification: VirtualChainChanged) -> None:
        """
        Apply a node-authoritative selected chain change.

        Unknown added blocks are ingested first, then the selected tip is
        moved to the last added block.
        """
        added = notification.added_chain_block_hashes
        if not added:
            return

        async with self._lock:
            for block_hash in added:
                if not await self._is_stored(block_hash):
                    await self._ingest_block(await self.rpc.get_block(block_hash))

            logger.debug(
                f"[Notifications] Virtual chain changed: "
                f"{len(notification.removed_chain_block_hashes)} removed, {len(added)} added"
            )
            await self._handle_reorg(added[-1])
