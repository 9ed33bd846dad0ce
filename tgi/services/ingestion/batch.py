"""
Missing-ancestor batch.

Collects a block together with every ancestor the database is missing,
fetching the ancestors from the node, so that the whole batch can be
committed parent-first in one transaction.
"""

import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.config.constants import (
    MAX_SUPPORTED_MISSING_DEPENDENCIES,
    RPC_MISSING_BLOCK_MAX_RETRIES,
    RPC_RETRY_DELAY_BASE,
)
from tgi.services.chain_state import ChainStateTracker
from tgi.services.rpc_client import BlockNotFoundError, NodeRpcClient, RpcBlock
from tgi.services.rpc_client.rpc_wrapper import backoff_delay
from tgi.utils.exceptions import GapUnresolvableError, OutOfSyncError


class Batch:
    """A block and its missing ancestors, keyed by hash."""

    def __init__(
        self,
        tracker: ChainStateTracker,
        rpc: NodeRpcClient,
        max_missing: int = MAX_SUPPORTED_MISSING_DEPENDENCIES,
        max_fetch_attempts: int = RPC_MISSING_BLOCK_MAX_RETRIES,
        retry_delay: float = RPC_RETRY_DELAY_BASE,
    ) -> None:
        self.tracker = tracker
        self.rpc = rpc
        self.max_missing = max_missing
        self.max_fetch_attempts = max_fetch_attempts
        self.retry_delay = retry_delay
        self.blocks: dict[str, RpcBlock] = {}

    def __len__(self) -> int:
        return len(self.blocks)

    def has(self, block_hash: str) -> bool:
        return block_hash in self.blocks

    @property
    def missing_count(self) -> int:
        """Number of collected ancestors (the block itself excluded)."""
        return max(len(self.blocks) - 1, 0)

    async def collect(self, block: RpcBlock, session: AsyncSession) -> None:
        """
        Collect ``block`` and, transitively, its missing ancestors.

        Ancestors below the sync root are recorded as external and not
        collected.

        Args:
            block: Block to ingest
            session: Read session used to check which blocks are stored

        Raises:
            OutOfSyncError: If more ancestors are missing than supported
            GapUnresolvableError: If the node cannot return an ancestor
        """
        self.blocks[block.hash] = block
        if await self.tracker.base_of(block.hash, session) is not None:
            return

        pending = [block]
        while pending:
            item = pending.pop()
            for parent_hash in item.parent_hashes:
                if self.has(parent_hash) or self.tracker.is_external(parent_hash):
                    continue
                if await self.tracker.base_of(parent_hash, session) is not None:
                    continue

                parent = await self._fetch(item.hash, parent_hash)
                if not self.tracker.in_scope(parent):
                    logger.debug(
                        f"[Batch] Parent {parent_hash} of {item.hash} is below the root, "
                        f"recorded as external"
                    )
                    self.tracker.mark_external(parent_hash)
                    continue

                self.blocks[parent_hash] = parent
                logger.warning(
                    f"[Batch] Missing parent {parent_hash} of {item.hash} "
                    f"registered for processing"
                )
                if self.missing_count > self.max_missing:
                    raise OutOfSyncError(
                        f"More than {self.max_missing} missing dependencies found for "
                        f"block {block.hash}: the index is out of sync with the node"
                    )
                pending.append(parent)

    async def _fetch(self, child_hash: str, parent_hash: str) -> RpcBlock:
        """Fetch an ancestor, retrying a bounded number of times if unknown."""
        for attempt in range(self.max_fetch_attempts):
            try:
                return await self.rpc.get_block(parent_hash)
            except BlockNotFoundError as e:
                if attempt == self.max_fetch_attempts - 1:
                    logger.error(
                        f"[Batch] Parent {parent_hash} of {child_hash} not found "
                        f"after {self.max_fetch_attempts} attempts"
                    )
                    raise GapUnresolvableError(child_hash, parent_hash) from e

                delay = backoff_delay(attempt, base=self.retry_delay)
                logger.warning(
                    f"[Batch] Parent {parent_hash} of {child_hash} not found on attempt "
                    f"{attempt + 1}/{self.max_fetch_attempts}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

        raise GapUnresolvableError(child_hash, parent_hash)

    def in_topological_order(self) -> list[RpcBlock]:
        """
        Collected blocks, every block after its collected parents.

        The requested block descends from every other collected block,
        so it always comes last.
        """
        remaining = {h: 0 for h in self.blocks}
        children: dict[str, list[str]] = {h: [] for h in self.blocks}
        for block_hash, block in self.blocks.items():
            for parent_hash in block.parent_hashes:
                if parent_hash in self.blocks:
                    remaining[block_hash] += 1
                    children[parent_hash].append(block_hash)

        ready = [h for h, count in remaining.items() if count == 0]
        ordered: list[RpcBlock] = []
        while ready:
            block_hash = ready.pop()
            ordered.append(self.blocks[block_hash])
            for child_hash in children[block_hash]:
                remaining[child_hash] -= 1
                if remaining[child_hash] == 0:
                    ready.append(child_hash)
        return ordered
