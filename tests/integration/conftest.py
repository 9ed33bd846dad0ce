"""Fixtures for pipeline tests against an in-memory database."""

import asyncio

import pytest
import pytest_asyncio
from sqlalchemy import select

from tgi.models import AppConfig, Block, ChainState, Edge, HeightGroup, ReorgEvent


class Db:
    """Read helpers over the test database."""

    def __init__(self, session_maker):
        self.session_maker = session_maker

    async def _all(self, model, *order_by):
        async with self.session_maker() as session:
            result = await session.execute(select(model).order_by(*order_by))
            return list(result.scalars().all())

    async def blocks(self) -> dict[str, Block]:
        return {b.block_hash: b for b in await self._all(Block, Block.id)}

    async def edges(self) -> list[Edge]:
        return await self._all(Edge, Edge.from_block_id, Edge.to_block_id)

    async def height_groups(self) -> dict[int, int]:
        return {g.height: g.size for g in await self._all(HeightGroup, HeightGroup.height)}

    async def app_configs(self) -> list[AppConfig]:
        return await self._all(AppConfig, AppConfig.id)

    async def chain_state(self) -> ChainState | None:
        rows = await self._all(ChainState, ChainState.id)
        return rows[0] if rows else None

    async def reorg_events(self) -> list[ReorgEvent]:
        return await self._all(ReorgEvent, ReorgEvent.id)


@pytest.fixture
def db(session_maker):
    return Db(session_maker)


async def _start(pipeline):
    """Run the startup steps of ``sync()`` up to the end of the backfill."""
    await pipeline.update_node_version()
    await pipeline.register_app_config()
    await pipeline.subscribe()
    await pipeline.resync_database()


@pytest.fixture
def start():
    return _start


@pytest_asyncio.fixture
async def consumer(pipeline):
    """Notification consumer running in the background."""
    task = asyncio.create_task(pipeline.process_notifications())
    yield task
    pipeline.stop()
    await asyncio.wait_for(task, timeout=5)


@pytest.fixture
def linear_node(node):
    # G <- A <- B <- C
    node.add_block("G")
    node.add_block("A", ["G"])
    node.add_block("B", ["A"])
    node.add_block("C", ["B"])
    return node
