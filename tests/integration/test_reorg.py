"""
Integration tests for selected tip switches.

Tests cover:
- Side branches that do not overtake the selected tip
- Heavier branches triggering a reorg
- The G/B1/B2/B3 scenario end to end
- Node-authoritative virtual chain changes
"""

import pytest

from tgi.config.constants import COLOR_BLUE, COLOR_GRAY
from tgi.services.chain_state import ClassificationKind
from tgi.services.rpc_client import VirtualChainChanged


@pytest.fixture
def fork_node(node):
    # G <- B1, tip after the first sync
    node.add_block("G")
    node.add_block("B1", ["G"], blue_score=1)
    return node


class TestForkScenario:
    """G, B1 on the chain; B2 forks from G; B3 on B2 overtakes B1."""

    @pytest.mark.asyncio
    async def test_side_branch_keeps_selected_tip(self, pipeline, fork_node, db, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)

        kind = await pipeline.ingest_block(fork_node.blocks["B2"])

        assert kind == ClassificationKind.SIDE_BRANCH
        blocks = await db.blocks()
        assert blocks["B1"].is_in_virtual_selected_parent_chain
        assert not blocks["B2"].is_in_virtual_selected_parent_chain
        assert blocks["B2"].height == 1
        assert blocks["B2"].height_group_index == 1
        state = await db.chain_state()
        assert state.selected_tip_hash == "B1"
        assert state.cursor_hash == "B2"
        assert await db.reorg_events() == []

    @pytest.mark.asyncio
    async def test_heavier_branch_alters_selected_tip(self, pipeline, fork_node, db, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)
        fork_node.add_block("B3", ["B2"], blue_score=2)
        await pipeline.ingest_block(fork_node.blocks["B2"])

        kind = await pipeline.ingest_block(fork_node.blocks["B3"])

        assert kind == ClassificationKind.ALTERS_SELECTED_TIP
        blocks = await db.blocks()
        assert blocks["B1"].is_abandoned
        assert not blocks["B1"].is_in_virtual_selected_parent_chain
        for block_hash in ("G", "B2", "B3"):
            assert blocks[block_hash].is_in_virtual_selected_parent_chain
            assert not blocks[block_hash].is_abandoned
        assert blocks["B3"].height == 2

        state = await db.chain_state()
        assert state.selected_tip_hash == "B3"
        assert state.cursor_hash == "B3"
        assert pipeline.tracker.committed_tip_hash == "B3"

    @pytest.mark.asyncio
    async def test_reorg_event_recorded(self, pipeline, fork_node, db, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)
        fork_node.add_block("B3", ["B2"], blue_score=2)
        await pipeline.ingest_block(fork_node.blocks["B2"])
        await pipeline.ingest_block(fork_node.blocks["B3"])

        events = await db.reorg_events()

        assert len(events) == 1
        event = events[0]
        assert event.old_tip_hash == "B1"
        assert event.new_tip_hash == "B3"
        assert event.common_ancestor_hash == "G"
        assert event.abandoned_count == 1
        assert event.adopted_count == 2

    @pytest.mark.asyncio
    async def test_abandoned_block_kept(self, pipeline, fork_node, db, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)
        fork_node.add_block("B3", ["B2"], blue_score=2)
        await pipeline.ingest_block(fork_node.blocks["B2"])
        await pipeline.ingest_block(fork_node.blocks["B3"])

        blocks = await db.blocks()

        assert list(blocks) == ["G", "B1", "B2", "B3"]
        assert await db.height_groups() == {0: 1, 1: 2, 2: 1}

    @pytest.mark.asyncio
    async def test_cursor_never_moves_back(self, pipeline, fork_node, db, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)
        fork_node.add_block("B3", ["B2"], blue_score=2)

        cursor_ids = [(await db.chain_state()).cursor_block_id]
        for block_hash in ("B2", "B3"):
            await pipeline.ingest_block(fork_node.blocks[block_hash])
            cursor_ids.append((await db.chain_state()).cursor_block_id)

        assert cursor_ids == sorted(cursor_ids)
        assert len(set(cursor_ids)) == 3


class TestDeepReorg:
    """Test reorgs abandoning several chain blocks."""

    @pytest.mark.asyncio
    async def test_heavier_fork_from_ancestor(self, pipeline, linear_node, db, start):
        await start(pipeline)
        linear_node.add_block("X", ["A"], blue_score=10)

        kind = await pipeline.ingest_block(linear_node.blocks["X"])

        assert kind == ClassificationKind.ALTERS_SELECTED_TIP
        blocks = await db.blocks()
        assert blocks["B"].is_abandoned
        assert blocks["C"].is_abandoned
        assert blocks["X"].is_in_virtual_selected_parent_chain
        event = (await db.reorg_events())[0]
        assert (event.abandoned_count, event.adopted_count) == (2, 1)
        assert event.common_ancestor_hash == "A"

    @pytest.mark.asyncio
    async def test_merge_set_colors_replayed(self, pipeline, linear_node, db, start):
        await start(pipeline)
        linear_node.add_block("X", ["A"], blue_score=10)

        await pipeline.ingest_block(linear_node.blocks["X"])

        blocks = await db.blocks()
        # C's merge set (B) lost its color, X's merge set (A) is blue
        assert blocks["B"].color == COLOR_GRAY
        assert blocks["A"].color == COLOR_BLUE

    @pytest.mark.asyncio
    async def test_reorg_back_to_old_branch(self, pipeline, linear_node, db, start):
        await start(pipeline)
        linear_node.add_block("X", ["A"], blue_score=10)
        await pipeline.ingest_block(linear_node.blocks["X"])

        event = await pipeline.handle_reorg("C")

        assert event.abandoned_count == 1
        assert event.adopted_count == 2
        blocks = await db.blocks()
        assert blocks["X"].is_abandoned
        assert not blocks["B"].is_abandoned
        assert blocks["C"].is_in_virtual_selected_parent_chain
        assert (await db.chain_state()).selected_tip_hash == "C"

    @pytest.mark.asyncio
    async def test_reorg_to_current_tip_is_noop(self, pipeline, linear_node, db, start):
        await start(pipeline)

        assert await pipeline.handle_reorg("C") is None
        assert await db.reorg_events() == []


class TestVirtualChainChanged:
    """Test node-driven selected chain updates."""

    @pytest.mark.asyncio
    async def test_node_moves_tip_to_side_branch(self, pipeline, linear_node, db, start):
        await start(pipeline)
        linear_node.add_block("X", ["A"])
        await pipeline.ingest_block(linear_node.blocks["X"])
        assert (await db.chain_state()).selected_tip_hash == "C"

        await pipeline.handle_virtual_chain_changed(
            _chain_changed(added=["X"], removed=["C", "B"])
        )

        blocks = await db.blocks()
        assert blocks["X"].is_in_virtual_selected_parent_chain
        assert blocks["C"].is_abandoned
        assert (await db.chain_state()).selected_tip_hash == "X"

    @pytest.mark.asyncio
    async def test_unknown_added_blocks_are_ingested(self, pipeline, linear_node, db, start):
        await start(pipeline)
        linear_node.add_block("D", ["C"])
        linear_node.add_block("E", ["D"])

        await pipeline.handle_virtual_chain_changed(_chain_changed(added=["D", "E"]))

        blocks = await db.blocks()
        assert list(blocks)[-2:] == ["D", "E"]
        assert pipeline.tracker.committed_tip_hash == "E"
        assert await db.reorg_events() == []


def _chain_changed(added, removed=()):
    return VirtualChainChanged(
        added_chain_block_hashes=list(added),
        removed_chain_block_hashes=list(removed),
    )
