"""
Chain-State Tracker.

Tracks the selected tip and the sync cursor, caches the bases of stored
blocks and classifies incoming blocks against the stored DAG.

State changes made inside a unit of work are staged and only become
visible to later units after the transaction committed: ``begin`` opens
a stage, ``commit`` publishes it and ``rollback`` drops it.
"""

from collections import OrderedDict

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.config.constants import BLOCK_BASE_CACHE_CAPACITY
from tgi.repositories.block_repository import BlockBase, BlockRepository
from tgi.repositories.chain_state_repository import ChainStateRepository
from tgi.services.rpc_client.types import RpcBlock

from .classification import Classification, ClassificationKind, ResumePoint

BlockRef = tuple[str, BlockBase]


class ChainStateTracker:
    """In-memory view of the selected tip, the cursor and stored block bases."""

    def __init__(self, cache_capacity: int = BLOCK_BASE_CACHE_CAPACITY) -> None:
        self.cache_capacity = cache_capacity

        # Published state
        self._cache: OrderedDict[str, BlockBase] = OrderedDict()
        self._external: set[str] = set()
        self._tip: BlockRef | None = None
        self._cursor: BlockRef | None = None

        # Staged state of the open unit of work
        self._staged_bases: dict[str, BlockBase] = {}
        self._staged_tip: BlockRef | None = None
        self._staged_cursor: BlockRef | None = None

        self.root_hash: str | None = None
        self.root_daa_score = 0

    # ------------------------------------------------------------------
    # Unit of work staging
    # ------------------------------------------------------------------

    def begin(self) -> None:
        """Open a fresh stage for a unit of work."""
        self._staged_bases = {}
        self._staged_tip = None
        self._staged_cursor = None

    def commit(self) -> None:
        """Publish the stage after the transaction committed."""
        for block_hash, base in self._staged_bases.items():
            self._cache_put(block_hash, base)
        if self._staged_tip is not None:
            self._tip = self._staged_tip
        if self._staged_cursor is not None:
            self._cursor = self._staged_cursor
        self.begin()

    def rollback(self) -> None:
        """Drop the stage after the transaction rolled back."""
        self.begin()

    def reset(self) -> None:
        """Forget everything (database cleared)."""
        self._cache.clear()
        self._external.clear()
        self._tip = None
        self._cursor = None
        self.begin()

    def _cache_put(self, block_hash: str, base: BlockBase) -> None:
        self._cache[block_hash] = base
        self._cache.move_to_end(block_hash)
        while len(self._cache) > self.cache_capacity:
            self._cache.popitem(last=False)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def selected_tip(self) -> BlockRef | None:
        """Selected tip as seen by the open unit of work."""
        return self._staged_tip or self._tip

    @property
    def cursor(self) -> BlockRef | None:
        """Sync cursor as seen by the open unit of work."""
        return self._staged_cursor or self._cursor

    @property
    def committed_tip_hash(self) -> str | None:
        return self._tip[0] if self._tip else None

    @property
    def committed_cursor_hash(self) -> str | None:
        return self._cursor[0] if self._cursor else None

    def set_selected_tip(self, block_hash: str, base: BlockBase) -> None:
        self._staged_tip = (block_hash, base)

    def set_cursor(self, block_hash: str, base: BlockBase) -> None:
        self._staged_cursor = (block_hash, base)

    def set_root(self, block_hash: str, daa_score: int) -> None:
        """Set the sync root; blocks below its DAA score are out of scope."""
        self.root_hash = block_hash
        self.root_daa_score = daa_score

    def in_scope(self, block: RpcBlock) -> bool:
        """True unless the block lies below the sync root."""
        return self.root_hash is None or block.daa_score >= self.root_daa_score

    def remember(self, block_hash: str, base: BlockBase) -> None:
        """Stage the base of a block stored by the open unit of work."""
        self._staged_bases[block_hash] = base

    def mark_external(self, block_hash: str) -> None:
        """Record a hash as pruned below the root (never stored)."""
        self._external.add(block_hash)

    def is_external(self, block_hash: str) -> bool:
        return block_hash in self._external

    async def base_of(self, block_hash: str, session: AsyncSession) -> BlockBase | None:
        """
        Get the base of a stored block.

        Looks in the stage, then the cache, then the database. Database
        hits are staged, since the session may see uncommitted rows.
        """
        base = self._staged_bases.get(block_hash)
        if base is not None:
            return base

        base = self._cache.get(block_hash)
        if base is not None:
            self._cache.move_to_end(block_hash)
            return base

        base = await BlockRepository(session).get_base_by_hash(block_hash)
        if base is not None:
            self._staged_bases[block_hash] = base
        return base

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, session: AsyncSession, min_height: int = 0) -> ResumePoint:
        """
        Load the committed tip and cursor and warm up the cache.

        Args:
            session: Database session
            min_height: Lowest height whose bases are cached

        Returns:
            The resume point
        """
        self.reset()
        resume = await self.resume_point(session)

        blocks = BlockRepository(session)
        for block_hash, base in await blocks.load_bases(min_height):
            self._cache_put(block_hash, base)
        logger.info(f"[Tracker] Cache loaded with {len(self._cache)} block bases")

        if resume.selected_tip_hash is not None:
            tip = await self.base_of(resume.selected_tip_hash, session)
            cursor = await self.base_of(resume.cursor_hash, session)
            if tip is not None and cursor is not None:
                self._tip = (resume.selected_tip_hash, tip)
                self._cursor = (resume.cursor_hash, cursor)
        self.commit()
        return resume

    async def resume_point(self, session: AsyncSession) -> ResumePoint:
        """
        Read where ingestion resumes from the committed chain state.

        Returns:
            ResumePoint; ``is_genesis`` when nothing was committed yet
        """
        state = await ChainStateRepository(session).get()
        if state is None:
            return ResumePoint()
        return ResumePoint(
            cursor_hash=state.cursor_hash,
            cursor_height=state.cursor_height,
            selected_tip_hash=state.selected_tip_hash,
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    async def stored_parents(
        self, block: RpcBlock, session: AsyncSession
    ) -> tuple[list[tuple[str, BlockBase]], list[str]]:
        """
        Split the parents of a block into stored ones and missing ones.

        External parents are in neither list.

        Returns:
            (stored (hash, base) pairs, missing hashes)
        """
        stored: list[tuple[str, BlockBase]] = []
        missing: list[str] = []
        for parent_hash in block.parent_hashes:
            if self.is_external(parent_hash):
                continue
            base = await self.base_of(parent_hash, session)
            if base is None:
                missing.append(parent_hash)
            else:
                stored.append((parent_hash, base))
        return stored, missing

    async def classify(self, block: RpcBlock, session: AsyncSession) -> Classification:
        """
        Classify a block against the stored DAG and the selected tip.

        Rules, first match wins:
        1. Hash already stored: STALE_DUPLICATE
        2. A parent is neither stored nor external: GAP
        3. Nothing stored yet (genesis or root): EXTENDS_TIP
        4. Selected parent is the selected tip: EXTENDS_TIP
        5. (blue score, height) beats the selected tip: ALTERS_SELECTED_TIP
        6. Otherwise: SIDE_BRANCH

        Args:
            block: Incoming block
            session: Database session of the unit of work

        Returns:
            Classification
        """
        if await self.base_of(block.hash, session) is not None:
            return Classification(ClassificationKind.STALE_DUPLICATE)

        stored, missing = await self.stored_parents(block, session)
        tip = self.selected_tip

        if missing:
            return Classification(ClassificationKind.GAP, tuple(missing))

        if tip is None:
            return Classification(ClassificationKind.EXTENDS_TIP)

        tip_hash, tip_base = tip
        if block.effective_selected_parent == tip_hash:
            return Classification(ClassificationKind.EXTENDS_TIP)

        height = max((base.height for _, base in stored), default=-1) + 1
        if (block.blue_score, height) > (tip_base.blue_score, tip_base.height):
            return Classification(ClassificationKind.ALTERS_SELECTED_TIP)

        return Classification(ClassificationKind.SIDE_BRANCH)
