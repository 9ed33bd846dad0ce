"""
Node RPC Client.

WebSocket JSON-RPC client of the node with unbounded retry of transient
failures, notification subscriptions and reconnect handling.
"""

from .client import NodeRpcClient
from .errors import (
    BlockNotFoundError,
    RpcConnectionError,
    RpcError,
    RpcProtocolError,
    RpcTimeoutError,
)
from .types import BlockAdded, BlockDagInfo, NodeInfo, RpcBlock, VirtualChainChanged

__all__ = [
    "NodeRpcClient",
    "RpcError",
    "RpcConnectionError",
    "RpcTimeoutError",
    "RpcProtocolError",
    "BlockNotFoundError",
    "BlockAdded",
    "BlockDagInfo",
    "NodeInfo",
    "RpcBlock",
    "VirtualChainChanged",
]
