"""
Ingestion Pipeline App Config Mixin.

Provides node version tracking and app_config registration.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from tgi.config.settings import parse_version
from tgi.models import AppConfig
from tgi.repositories.app_config_repository import AppConfigRepository
from tgi.utils.exceptions import IncompatibleNodeVersionError


class AppConfigMixin:
    """Mixin providing app_config functionality."""

    async def update_node_version(self) -> str:
        """
        Read the node version; log when it changed since the last read.

        Returns:
            Current node version
        """
        info = await self.rpc.get_info()
        version = info.server_version
        if self.node_version is not None and self.node_version != version:
            logger.warning(
                f"[AppConfig] Node version changed: {self.node_version} -> {version}"
            )
        self.node_version = version
        return version

    async def register_app_config(self) -> AppConfig:
        """
        Store versions and network in the app_config singleton.

        The row is written before the version check, so an incompatible
        node is visible in the database.

        Raises:
            IncompatibleNodeVersionError: If the node is older than min_node_version
        """
        node_version = self.node_version or "unknown"
        network = self.settings.network
        logger.info(
            f"[AppConfig] TGI version: {self.processing_version}, "
            f"Node version: {node_version}, Network: {network}"
        )

        async def work(session: AsyncSession) -> AppConfig:
            return await AppConfigRepository(session).store(
                tondid_version=node_version,
                processing_version=self.processing_version,
                network=network,
            )

        config = await self._run_unit(work, "register app config")
        self._check_node_version(node_version)
        logger.info("[AppConfig] Finished registering app config")
        return config

    def _check_node_version(self, node_version: str) -> None:
        min_version = self.settings.min_node_version
        if min_version is None:
            return
        try:
            compatible = parse_version(node_version) >= parse_version(min_version)
        except ValueError:
            logger.error(f"[AppConfig] Cannot parse node version {node_version}")
            compatible = False
        if not compatible:
            raise IncompatibleNodeVersionError(node_version, min_version)
