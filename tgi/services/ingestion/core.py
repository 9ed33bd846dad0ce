"""
Ingestion Pipeline Core Service.

Main service class that combines all ingestion functionality.
Inherits from mixins to provide block processing, reorg handling,
backfill, app_config registration and notification handling.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tgi.config.constants import (
    DB_RETRY_DELAY_BASE,
    MAX_SUPPORTED_MISSING_DEPENDENCIES,
    RPC_RETRY_DELAY_BASE,
)
from tgi.config.settings import Settings
from tgi.services.chain_state import ChainStateTracker
from tgi.services.rpc_client import NodeRpcClient
from tgi.utils.db_decorators import run_in_transaction
from tgi.version import VERSION

from .app_config_mixin import AppConfigMixin
from .block_processing_mixin import BlockProcessingMixin
from .notifications_mixin import NotificationsMixin
from .reorg_mixin import ReorgMixin
from .sync_mixin import SyncMixin

T = TypeVar("T")


class IngestionPipeline(
    BlockProcessingMixin,
    ReorgMixin,
    SyncMixin,
    AppConfigMixin,
    NotificationsMixin,
):
    """
    Block ingestion pipeline.

    Single logical writer: every unit of work (backfill step,
    notification, reorg) runs under one lock, in its own transaction,
    and the chain-state tracker only sees committed state.

    Key features:
    - Backfill from the sync cursor after restarts
    - Missing ancestors fetched and committed parent-first
    - Reorgs replayed from the common ancestor
    - Idempotent: re-ingesting a stored block is a no-op
    """

    def __init__(
        self,
        settings: Settings,
        session_maker: async_sessionmaker[AsyncSession],
        rpc: NodeRpcClient,
        tracker: ChainStateTracker | None = None,
    ) -> None:
        """
        Initialize pipeline.

        Args:
            settings: Processing settings
            session_maker: Session factory, one session per unit of work
            rpc: Node RPC client
            tracker: Chain-state tracker (a fresh one by default)
        """
        self.settings = settings
        self.session_maker = session_maker
        self.rpc = rpc
        self.tracker = tracker or ChainStateTracker(settings.block_cache_capacity)

        self.processing_version = VERSION
        self.node_version: str | None = None

        # Single writer
        self._lock = asyncio.Lock()
        self._queue: asyncio.Queue = asyncio.Queue()
        self._stopping = asyncio.Event()
        self._database_cleared = False

        self.syncing = False
        self.missing_block_retry_delay = RPC_RETRY_DELAY_BASE
        self.max_missing_dependencies = MAX_SUPPORTED_MISSING_DEPENDENCIES
        self.db_retry_delay = DB_RETRY_DELAY_BASE

        self._block_handlers = self._build_block_handlers()

    async def _run_unit(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        operation_name: str,
    ) -> T:
        """Run one unit of work with the tracker staged alongside it."""
        return await run_in_transaction(
            self.session_maker,
            work,
            operation_name=operation_name,
            max_retries=self.settings.db_max_retries,
            retry_delay_base=self.db_retry_delay,
            on_begin=self.tracker.begin,
            on_commit=self.tracker.commit,
            on_rollback=self.tracker.rollback,
        )

    async def _run_read(
        self,
        work: Callable[[AsyncSession], Awaitable[T]],
        operation_name: str,
    ) -> T:
        """Run a read with the same retry and escalation as a unit of work."""
        return await run_in_transaction(
            self.session_maker,
            work,
            operation_name=operation_name,
            max_retries=self.settings.db_max_retries,
            retry_delay_base=self.db_retry_delay,
        )

    @property
    def is_stopping(self) -> bool:
        return self._stopping.is_set()

    def status(self) -> dict[str, Any]:
        """Snapshot of ingestion progress for the health endpoint."""
        return {
            "syncing": self.syncing,
            "stopping": self.is_stopping,
            "node_version": self.node_version,
            "selected_tip": self.tracker.committed_tip_hash,
            "cursor": self.tracker.committed_cursor_hash,
            "pending_notifications": self._queue.qsize(),
        }
