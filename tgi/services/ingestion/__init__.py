"""
Ingestion Pipeline.

Consumes blocks from the node, classifies them against the stored DAG
and persists them, one transaction per logical unit of work.

Key features:
- Backfill from the sync cursor (resync)
- Block-added and virtual-chain-changed notifications
- Reorg handling with tombstoned abandoned blocks
- app_config registration and node version checks
"""

from .app_config_mixin import AppConfigMixin
from .batch import Batch
from .block_processing_mixin import BlockProcessingMixin
from .core import IngestionPipeline
from .notifications_mixin import NotificationsMixin
from .reorg_mixin import ReorgMixin
from .sync_mixin import SyncMixin

__all__ = [
    "IngestionPipeline",
    "Batch",
    "AppConfigMixin",
    "BlockProcessingMixin",
    "NotificationsMixin",
    "ReorgMixin",
    "SyncMixin",
]
