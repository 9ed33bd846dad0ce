"""
Integration tests for app_config and the read-side queries.

Tests cover:
- Registration and node version changes
- Incompatible node versions recorded, then rejected
- The single-row constraint of app_config
- Queries used by the API tier
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from tgi.models import AppConfig
from tgi.repositories.app_config_repository import AppConfigRepository
from tgi.repositories.block_repository import BlockBase, BlockRepository
from tgi.repositories.chain_state_repository import ChainStateRepository
from tgi.services.queries import IndexQueries
from tgi.utils.exceptions import IncompatibleNodeVersionError
from tgi.version import VERSION


class TestRegistration:
    """Test app_config registration."""

    @pytest.mark.asyncio
    async def test_registers_versions_and_network(self, pipeline, node, db):
        await pipeline.update_node_version()
        await pipeline.register_app_config()

        configs = await db.app_configs()
        assert len(configs) == 1
        assert configs[0].tondid_version == "1.0.0"
        assert configs[0].processing_version == VERSION
        assert configs[0].network == "tondi-mainnet"

    @pytest.mark.asyncio
    async def test_testnet_network_name(self, make_pipeline, node, db):
        pipeline = make_pipeline(testnet=True, netsuffix=11)
        await pipeline.update_node_version()
        await pipeline.register_app_config()

        assert (await db.app_configs())[0].network == "tondi-testnet11"

    @pytest.mark.asyncio
    async def test_version_change_updates_single_row(self, pipeline, node, db):
        await pipeline.update_node_version()
        await pipeline.register_app_config()
        node.version = "1.2.0"

        assert await pipeline.update_node_version() == "1.2.0"
        await pipeline.register_app_config()

        configs = await db.app_configs()
        assert len(configs) == 1
        assert configs[0].tondid_version == "1.2.0"

    @pytest.mark.asyncio
    async def test_incompatible_version_recorded_then_rejected(self, make_pipeline, node, db):
        pipeline = make_pipeline(min_node_version="1.5.0")
        await pipeline.update_node_version()

        with pytest.raises(IncompatibleNodeVersionError) as exc_info:
            await pipeline.register_app_config()

        assert exc_info.value.node_version == "1.0.0"
        assert (await db.app_configs())[0].tondid_version == "1.0.0"

    @pytest.mark.asyncio
    async def test_compatible_version(self, make_pipeline, node, db):
        node.version = "1.5.0-dev"
        pipeline = make_pipeline(min_node_version="1.5.0")
        await pipeline.update_node_version()

        config = await pipeline.register_app_config()

        assert config.tondid_version == "1.5.0-dev"


class TestSingleRowConstraint:
    """Test that app_config can never hold a second row."""

    @pytest.mark.asyncio
    async def test_second_row_rejected(self, session_maker):
        async with session_maker() as session:
            async with session.begin():
                session.add(AppConfig(id=True, tondid_version="1", processing_version="1", network="n"))

        with pytest.raises(IntegrityError):
            async with session_maker() as session:
                async with session.begin():
                    session.add(
                        AppConfig(id=True, tondid_version="2", processing_version="2", network="n")
                    )

    @pytest.mark.asyncio
    async def test_false_id_rejected(self, session_maker):
        with pytest.raises(IntegrityError):
            async with session_maker() as session:
                async with session.begin():
                    session.add(
                        AppConfig(id=False, tondid_version="1", processing_version="1", network="n")
                    )


    @pytest.mark.asyncio
    async def test_concurrent_insert_falls_back_to_update(self, session_maker, db):
        async with session_maker() as session:
            async with session.begin():
                session.add(AppConfig(id=True, tondid_version="1", processing_version="1", network="n"))

        # Another writer created the row after our read saw none
        async with session_maker() as session:
            async with session.begin():
                repo = AppConfigRepository(session)
                repo.get = AsyncMock(return_value=None)
                config = await repo.store("2.0.0", "0.2.0", "tondi-testnet")

        assert config.tondid_version == "2.0.0"
        rows = await db.app_configs()
        assert len(rows) == 1
        assert rows[0].tondid_version == "2.0.0"
        assert rows[0].processing_version == "0.2.0"
        assert rows[0].network == "tondi-testnet"


class TestIndexQueries:

    """Test the read side after a reorg."""

    @pytest.fixture
    def fork_node(self, node):
        node.add_block("G")
        node.add_block("B1", ["G"], blue_score=1)
        return node

    @pytest_asyncio.fixture
    async def reorged(self, pipeline, fork_node, start):
        await start(pipeline)
        fork_node.add_block("B2", ["G"], blue_score=1)
        fork_node.add_block("B3", ["B2"], blue_score=2)
        await pipeline.ingest_block(fork_node.blocks["B2"])
        await pipeline.ingest_block(fork_node.blocks["B3"])
        return pipeline

    @pytest.mark.asyncio
    async def test_blocks_by_height_range(self, reorged, session_maker):
        async with session_maker() as session:
            queries = IndexQueries(session)
            blocks = await queries.blocks_by_height_range(0, 2)
            empty = await queries.blocks_by_height_range(2, 2)

        assert [b.block_hash for b in blocks] == ["G", "B1", "B2"]
        assert empty == []

    @pytest.mark.asyncio
    async def test_selected_chain(self, reorged, session_maker):
        async with session_maker() as session:
            queries = IndexQueries(session)
            tip = await queries.selected_tip()
            chain = await queries.selected_chain()

        assert tip.block_hash == "B3"
        assert [b.block_hash for b in chain] == ["B3", "B2", "G"]

    @pytest.mark.asyncio
    async def test_selected_tip_follows_chain_state(self, reorged, session_maker):
        async with session_maker() as session:
            async with session.begin():
                blocks = BlockRepository(session)
                b2 = BlockBase.of(await blocks.get_by_hash("B2"))
                await ChainStateRepository(session).save("B2", b2, "B2", b2)

        async with session_maker() as session:
            tip = await IndexQueries(session).selected_tip()

        # B3 is still the highest selected chain block
        assert tip.block_hash == "B2"

    @pytest.mark.asyncio
    async def test_selected_tip_before_ingestion(self, session_maker):
        async with session_maker() as session:
            assert await IndexQueries(session).selected_tip() is None

    @pytest.mark.asyncio
    async def test_recent_reorgs(self, reorged, session_maker):

        async with session_maker() as session:
            events = await IndexQueries(session).recent_reorgs()

        assert [e.new_tip_hash for e in events] == ["B3"]

    @pytest.mark.asyncio
    async def test_app_config_view(self, reorged, session_maker):
        async with session_maker() as session:
            view = await IndexQueries(session).app_config()

        assert view == {
            "tondidVersion": "1.0.0",
            "processingVersion": VERSION,
            "network": "tondi-mainnet",
        }

    @pytest.mark.asyncio
    async def test_app_config_view_before_registration(self, session_maker):
        async with session_maker() as session:
            assert await IndexQueries(session).app_config() is None

    @pytest.mark.asyncio
    async def test_block_by_hash(self, reorged, session_maker):
        async with session_maker() as session:
            queries = IndexQueries(session)
            abandoned = await queries.block_by_hash("B1")
            unknown = await queries.block_by_hash("nope")

        assert abandoned.is_abandoned
        assert unknown is None
