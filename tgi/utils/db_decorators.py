"""
Database unit-of-work helpers.

Every logical unit of work runs in one transaction through
``run_in_transaction``: committed as a whole or rolled back as a whole,
retried a bounded number of times on database errors and escalated to
``PersistenceFatalError`` after that.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tgi.config.constants import DB_MAX_RETRIES, DB_RETRY_DELAY_BASE
from tgi.utils.exceptions import PersistenceFatalError

T = TypeVar("T")


async def run_in_transaction(
    session_maker: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    operation_name: str = "unit of work",
    max_retries: int = DB_MAX_RETRIES,
    retry_delay_base: float = DB_RETRY_DELAY_BASE,
    on_begin: Callable[[], None] | None = None,
    on_commit: Callable[[], None] | None = None,
    on_rollback: Callable[[], None] | None = None,
) -> T:
    """
    Run ``work`` in a fresh session and transaction.

    ``work`` is called again from scratch on every attempt, so it must not
    keep state outside the session between calls. The hooks let callers
    stage in-memory state alongside the transaction: ``on_begin`` before
    each attempt, ``on_commit`` after a successful commit and
    ``on_rollback`` after any failed attempt.

    Args:
        session_maker: Session factory
        work: Coroutine function receiving the session
        operation_name: Operation name for logging
        max_retries: Attempts before giving up
        retry_delay_base: Base delay in seconds for exponential backoff
        on_begin: Called before each attempt
        on_commit: Called after commit
        on_rollback: Called after rollback

    Returns:
        Result of ``work``

    Raises:
        PersistenceFatalError: If every attempt failed with a database error
        Any non-database exception raised by ``work`` (after rollback)
    """
    for attempt in range(max_retries):
        if on_begin is not None:
            on_begin()
        try:
            async with session_maker() as session:
                async with session.begin():
                    result = await work(session)
        except SQLAlchemyError as e:
            if on_rollback is not None:
                on_rollback()

            if attempt < max_retries - 1:
                delay = retry_delay_base * 2 ** attempt
                logger.warning(
                    f"[DB] {operation_name} failed on attempt {attempt + 1}/{max_retries}: "
                    f"{e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
                continue

            logger.error(
                f"[DB] {operation_name} failed after {max_retries} attempts: {e}"
            )
            raise PersistenceFatalError(operation_name, max_retries, e) from e
        except BaseException:
            # Includes cancellation: the transaction was rolled back
            if on_rollback is not None:
                on_rollback()
            raise

        if on_commit is not None:
            on_commit()
        if attempt > 0:
            logger.success(f"[DB] {operation_name} succeeded on attempt {attempt + 1}")
        return result

    raise PersistenceFatalError(operation_name, max_retries, RuntimeError("no attempts made"))
