"""
RPC Wrapper with Timeout and Retry Logic.

Provides centralized timeout and retry functionality for all node RPC calls.
Transient failures are retried forever with capped exponential backoff;
every other error propagates on the first attempt.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from tgi.config.constants import (
    RPC_RETRY_DELAY_BASE,
    RPC_RETRY_MAX_DELAY,
    RPC_TIMEOUT,
)

from .errors import TRANSIENT_RPC_ERRORS, RpcTimeoutError


async def with_timeout(
    coro: Awaitable[Any],
    timeout: float = RPC_TIMEOUT,
    operation_name: str = "RPC call",
) -> Any:
    """
    Execute async coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds (default: RPC_TIMEOUT)
        operation_name: Operation name for logging

    Returns:
        Result of the coroutine

    Raises:
        RpcTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.warning(error_msg)
        raise RpcTimeoutError(error_msg) from e


def backoff_delay(
    attempt: int,
    base: float = RPC_RETRY_DELAY_BASE,
    max_delay: float = RPC_RETRY_MAX_DELAY,
) -> float:
    """Exponential backoff delay for a zero-based attempt, capped."""
    return min(base * 2 ** min(attempt, 32), max_delay)


async def rpc_call_with_retry(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int | None = None,
    timeout: float = RPC_TIMEOUT,
    operation_name: str = "RPC call",
    retry_on: tuple[type[BaseException], ...] = TRANSIENT_RPC_ERRORS,
    delay_base: float = RPC_RETRY_DELAY_BASE,
    max_delay: float = RPC_RETRY_MAX_DELAY,
) -> Any:
    """
    Execute RPC call with retry logic and timeout.

    Args:
        coro_factory: Factory function that returns a coroutine
        max_retries: Maximum number of attempts (None: unbounded)
        timeout: Timeout per attempt in seconds
        operation_name: Operation name for logging
        retry_on: Exception types considered transient
        delay_base: Backoff base delay in seconds
        max_delay: Backoff cap in seconds

    Returns:
        Result of the RPC call

    Raises:
        The last transient error once ``max_retries`` attempts failed,
        or any non-transient error immediately
    """
    attempt = 0
    while True:
        attempts_label = (
            f"{attempt + 1}/{max_retries}" if max_retries else f"{attempt + 1}"
        )
        try:
            result = await with_timeout(
                coro_factory(),
                timeout=timeout,
                operation_name=f"{operation_name} (attempt {attempts_label})",
            )

            if attempt > 0:
                logger.success(
                    f"{operation_name} succeeded on attempt {attempt + 1}"
                )

            return result

        except retry_on as e:
            attempt += 1
            if max_retries is not None and attempt >= max_retries:
                logger.error(
                    f"{operation_name} failed after {max_retries} attempts: {e}"
                )
                raise

            delay = backoff_delay(attempt - 1, delay_base, max_delay)
            logger.warning(
                f"{operation_name} failed on attempt {attempts_label}: {e}. "
                f"Retrying in {delay}s..."
            )
            await asyncio.sleep(delay)
