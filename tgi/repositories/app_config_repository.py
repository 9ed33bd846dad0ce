"""
AppConfig repository.

Data access layer for the app_config singleton.
"""

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.models.app_config import AppConfig
from tgi.repositories.base import BaseRepository


class AppConfigRepository(BaseRepository[AppConfig]):
    """Repository for the app_config singleton row."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository."""
        super().__init__(AppConfig, session)

    async def get(self) -> AppConfig | None:
        """Get the singleton row, if created."""
        return await self.get_by_id(True)

    async def store(
        self,
        tondid_version: str,
        processing_version: str,
        network: str,
    ) -> AppConfig:
        """
        Create or update the singleton row.

        A concurrent writer creating the row first makes our insert fail
        on the primary key; the savepoint is rolled back and the row
        updated instead.

        Args:
            tondid_version: Version of the connected node
            processing_version: Version of this process
            network: Network name

        Returns:
            The stored row
        """
        values = {
            "tondid_version": tondid_version,
            "processing_version": processing_version,
            "network": network,
        }

        config = await self.get()
        if config is None:
            try:
                async with self.session.begin_nested():
                    config = AppConfig(id=True, **values)
                    self.session.add(config)
                return config
            except IntegrityError:
                logger.debug("app_config row created concurrently, updating it")
                config = await self.session.get(AppConfig, True, populate_existing=True)
                if config is None:
                    raise

        for key, value in values.items():
            setattr(config, key, value)
        await self.session.flush()
        return config
