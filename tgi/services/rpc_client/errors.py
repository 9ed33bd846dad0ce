"""
Node RPC errors.

Transient errors are retried by the client; the others propagate.
"""


class RpcError(Exception):
    """Base exception for node RPC errors."""


class RpcConnectionError(RpcError):
    """Connection to the node is down or was dropped mid-request."""


class RpcTimeoutError(RpcError):
    """The node did not answer within the request timeout."""


class RpcProtocolError(RpcError):
    """The node answered with a malformed message or an RPC error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.code = code
        super().__init__(message)


class BlockNotFoundError(RpcError):
    """The node does not know the requested block."""

    def __init__(self, block_hash: str, message: str | None = None) -> None:
        self.block_hash = block_hash
        super().__init__(message or f"Block {block_hash} not found")


# Retried with backoff, never fatal
TRANSIENT_RPC_ERRORS = (RpcConnectionError, RpcTimeoutError)
