"""
Node RPC client.

JSON-RPC over a single aiohttp WebSocket. Requests are matched to
responses by id; messages without an id are notifications and are
dispatched to the handlers of their scope. A dropped connection is
re-established in the background with capped exponential backoff,
active subscriptions are renewed and reconnect handlers are invoked.
"""

import asyncio
import inspect
import itertools
from collections.abc import Callable
from typing import Any

import aiohttp
from loguru import logger

from tgi.config.constants import RPC_CONNECT_TIMEOUT, RPC_TIMEOUT

from .errors import (
    BlockNotFoundError,
    RpcConnectionError,
    RpcProtocolError,
)
from .rpc_wrapper import backoff_delay, rpc_call_with_retry
from .types import BlockAdded, BlockDagInfo, NodeInfo, RpcBlock, VirtualChainChanged

# Notification scopes
SCOPE_BLOCK_ADDED = "blockAdded"
SCOPE_VIRTUAL_CHAIN_CHANGED = "virtualChainChanged"

# JSON-RPC error code of an unknown block
BLOCK_NOT_FOUND_CODE = -32004

NotificationHandler = Callable[[Any], Any]
ReconnectHandler = Callable[[], Any]


class NodeRpcClient:
    """
    WebSocket JSON-RPC client of the node.

    Every public call retries transient failures forever; a call only
    returns once the node answered or a non-transient error occurred.

    Notification handlers run on the reader task: they must hand the
    notification off (e.g. to a queue) and never await RPC calls.
    """

    _PARSERS: dict[str, Callable[[dict], Any]] = {
        SCOPE_BLOCK_ADDED: BlockAdded.from_payload,
        SCOPE_VIRTUAL_CHAIN_CHANGED: VirtualChainChanged.model_validate,
    }

    def __init__(
        self,
        url: str,
        timeout: float = RPC_TIMEOUT,
        connect_timeout: float = RPC_CONNECT_TIMEOUT,
    ) -> None:
        """
        Initialize client.

        Args:
            url: WebSocket URL of the node (ws://host:port)
            timeout: Per-request timeout in seconds
            connect_timeout: WebSocket handshake timeout in seconds
        """
        self.url = url
        self.timeout = timeout
        self.connect_timeout = connect_timeout

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._closing = False

        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future] = {}
        self._handlers: dict[str, list[NotificationHandler]] = {}
        self._reconnect_handlers: list[ReconnectHandler] = []

    @property
    def is_connected(self) -> bool:
        """True while the WebSocket is open."""
        return self._ws is not None and not self._ws.closed

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to the node, retrying until it accepts the connection."""
        self._closing = False
        if self._session is None:
            self._session = aiohttp.ClientSession()

        attempt = 0
        while True:
            try:
                await self._open()
                return
            except RpcConnectionError as e:
                delay = backoff_delay(attempt)
                attempt += 1
                logger.warning(
                    f"[RPC] Connection to {self.url} failed on attempt {attempt}: "
                    f"{e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)

    async def close(self) -> None:
        """Close the connection and stop reconnecting."""
        self._closing = True

        for task in (self._reconnect_task, self._reader_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._reconnect_task = None
        self._reader_task = None

        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None

        self._fail_pending(RpcConnectionError("Client closed"))
        logger.info(f"[RPC] Disconnected from {self.url}")

    def add_reconnect_handler(self, handler: ReconnectHandler) -> None:
        """Register a callable invoked after every successful reconnect."""
        self._reconnect_handlers.append(handler)

    async def _open(self) -> None:
        """Open the WebSocket and start the reader task."""
        assert self._session is not None
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self.url, heartbeat=self.timeout, max_msg_size=0),
                timeout=self.connect_timeout,
            )
        except (aiohttp.ClientError, OSError, TimeoutError) as e:
            raise RpcConnectionError(f"Cannot connect to {self.url}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop(self._ws))
        logger.info(f"[RPC] Connected to {self.url}")

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Route incoming messages until the socket closes."""
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    try:
                        message = msg.json()
                    except ValueError as e:
                        logger.error(f"[RPC] Malformed message from node: {e}")
                        continue
                    await self._handle_message(message)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning(f"[RPC] WebSocket error: {ws.exception()}")
                    break
        finally:
            self._fail_pending(RpcConnectionError("Connection to node lost"))
            reconnecting = (
                self._reconnect_task is not None and not self._reconnect_task.done()
            )
            if not self._closing and ws is self._ws and not reconnecting:
                logger.warning(f"[RPC] Connection to {self.url} lost, reconnecting")
                self._reconnect_task = asyncio.create_task(self._reconnect())

    async def _reconnect(self) -> None:
        """Reconnect, renew subscriptions and notify reconnect handlers."""
        attempt = 0
        while not self._closing:
            delay = backoff_delay(attempt)
            attempt += 1
            await asyncio.sleep(delay)
            try:
                await self._open()
                for scope in self._handlers:
                    await asyncio.wait_for(
                        self._request("subscribe", {"scope": scope}), timeout=self.timeout
                    )
            except (RpcConnectionError, RpcProtocolError, TimeoutError) as e:
                stale, self._ws = self._ws, None
                if stale is not None:
                    await stale.close()
                logger.warning(
                    f"[RPC] Reconnect attempt {attempt} failed: {e}"
                )
                continue

            logger.success(f"[RPC] Reconnected to {self.url} after {attempt} attempt(s)")
            for handler in self._reconnect_handlers:
                await self._invoke(handler)
            return

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _handle_message(self, message: dict) -> None:
        request_id = message.get("id")
        if request_id is not None:
            future = self._pending.pop(request_id, None)
            if future is None or future.done():
                return
            error = message.get("error")
            if error:
                future.set_exception(
                    RpcProtocolError(error.get("message", str(error)), error.get("code"))
                )
            else:
                future.set_result(message.get("result"))
            return

        scope = message.get("method")
        handlers = self._handlers.get(scope)
        if not handlers:
            logger.debug(f"[RPC] Ignoring notification {scope}")
            return

        try:
            notification = self._PARSERS[scope](message.get("params") or {})
        except (KeyError, ValueError) as e:
            logger.error(f"[RPC] Malformed {scope} notification: {e}")
            return

        for handler in handlers:
            await self._invoke(handler, notification)

    async def _invoke(self, handler: Callable[..., Any], *args: Any) -> None:
        """Call a sync or async handler; a failing handler must not kill the reader."""
        try:
            result = handler(*args)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"[RPC] Handler {handler!r} failed: {e}")

    async def _request(self, method: str, params: dict | None = None) -> Any:
        """Send one request and wait for its response (no retry)."""
        if not self.is_connected:
            raise RpcConnectionError("Not connected to node")

        request_id = next(self._ids)
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send_json(
                {"id": request_id, "method": method, "params": params or {}}
            )
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            self._pending.pop(request_id, None)
            raise RpcConnectionError(f"Send failed: {e}") from e

        try:
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def _call(self, method: str, params: dict | None = None) -> Any:
        return await rpc_call_with_retry(
            lambda: self._request(method, params),
            timeout=self.timeout,
            operation_name=f"[RPC] {method}",
        )

    # ------------------------------------------------------------------
    # Node API
    # ------------------------------------------------------------------

    async def get_info(self) -> NodeInfo:
        """Get server version and sync state."""
        return NodeInfo.model_validate(await self._call("getInfo"))

    async def get_block_dag_info(self) -> BlockDagInfo:
        """Get network, pruning point, tips and virtual DAA score."""
        return BlockDagInfo.model_validate(await self._call("getBlockDagInfo"))

    async def get_block(self, block_hash: str) -> RpcBlock:
        """
        Get a block with its verbose data.

        Raises:
            BlockNotFoundError: If the node does not know the block
        """
        try:
            result = await self._call(
                "getBlock", {"hash": block_hash, "includeTransactions": False}
            )
        except RpcProtocolError as e:
            if e.code == BLOCK_NOT_FOUND_CODE or "not found" in str(e).lower():
                raise BlockNotFoundError(block_hash, str(e)) from e
            raise
        return RpcBlock.from_payload(result["block"])

    async def get_blocks(self, low_hash: str) -> list[str]:
        """
        Get hashes from ``low_hash`` towards the tips.

        Returns:
            Hashes in topological order, ``low_hash`` first
        """
        result = await self._call(
            "getBlocks",
            {"lowHash": low_hash, "includeBlocks": False, "includeTransactions": False},
        )
        return list(result.get("blockHashes", []))

    async def get_sink(self) -> str:
        """Get the node's selected tip (sink)."""
        result = await self._call("getSink")
        return result["sink"]

    async def get_virtual_chain_from_block(self, start_hash: str) -> VirtualChainChanged:
        """Get selected chain changes since ``start_hash``."""
        result = await self._call(
            "getVirtualChainFromBlock",
            {"startHash": start_hash, "includeAcceptedTransactionIds": False},
        )
        return VirtualChainChanged.model_validate(result)

    async def subscribe_block_added(self, handler: NotificationHandler) -> None:
        """Deliver every new block to ``handler`` as ``BlockAdded``."""
        await self._subscribe(SCOPE_BLOCK_ADDED, handler)

    async def subscribe_virtual_chain_changed(self, handler: NotificationHandler) -> None:
        """Deliver selected chain changes to ``handler`` as ``VirtualChainChanged``."""
        await self._subscribe(SCOPE_VIRTUAL_CHAIN_CHANGED, handler)

    async def _subscribe(self, scope: str, handler: NotificationHandler) -> None:
        first = scope not in self._handlers
        self._handlers.setdefault(scope, []).append(handler)
        if first:
            await self._call("subscribe", {"scope": scope})
            logger.info(f"[RPC] Subscribed to {scope}")
