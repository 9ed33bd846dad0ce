"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from tgi.models.app_config import AppConfig
from tgi.models.base import Base
from tgi.models.block import Block
from tgi.models.chain_state import ChainState
from tgi.models.edge import Edge
from tgi.models.height_group import HeightGroup
from tgi.models.reorg_event import ReorgEvent

__all__ = [
    "AppConfig",
    "Base",
    "Block",
    "ChainState",
    "Edge",
    "HeightGroup",
    "ReorgEvent",
]
