"""
Unit tests for the unit-of-work helper and fatal error classification.

Tests cover:
- Bounded retries on database errors, then PersistenceFatalError
- Staging hooks called around every attempt
- Non-database errors propagated without retry
"""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from tgi.services.rpc_client import RpcConnectionError
from tgi.utils.db_decorators import run_in_transaction
from tgi.utils.exceptions import (
    GapUnresolvableError,
    IncompatibleNodeVersionError,
    PersistenceFatalError,
    is_fatal,
)


class Hooks:
    def __init__(self):
        self.calls = []

    def begin(self):
        self.calls.append("begin")

    def commit(self):
        self.calls.append("commit")

    def rollback(self):
        self.calls.append("rollback")


def operational_error():
    return OperationalError("INSERT INTO blocks", {}, Exception("connection reset"))


class TestRunInTransaction:
    """Test run_in_transaction."""

    @pytest.mark.asyncio
    async def test_returns_result_and_commits(self, session_maker):
        hooks = Hooks()

        async def work(session):
            result = await session.execute(text("SELECT 42"))
            return result.scalar()

        result = await run_in_transaction(
            session_maker, work, on_begin=hooks.begin,
            on_commit=hooks.commit, on_rollback=hooks.rollback,
        )

        assert result == 42
        assert hooks.calls == ["begin", "commit"]

    @pytest.mark.asyncio
    async def test_bounded_retries_become_fatal(self, session_maker):
        hooks = Hooks()
        attempts = []

        async def work(session):
            attempts.append(1)
            raise operational_error()

        with pytest.raises(PersistenceFatalError) as exc_info:
            await run_in_transaction(
                session_maker, work, operation_name="Ingest block",
                max_retries=3, retry_delay_base=0,
                on_begin=hooks.begin, on_commit=hooks.commit, on_rollback=hooks.rollback,
            )

        assert len(attempts) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.operation_name == "Ingest block"
        assert hooks.calls.count("rollback") == 3
        assert "commit" not in hooks.calls

    @pytest.mark.asyncio
    async def test_recovers_after_transient_database_error(self, session_maker):
        attempts = []

        async def work(session):
            attempts.append(1)
            if len(attempts) == 1:
                raise operational_error()
            return "done"

        result = await run_in_transaction(session_maker, work, retry_delay_base=0)

        assert result == "done"
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_non_database_error_not_retried(self, session_maker):
        hooks = Hooks()
        attempts = []

        async def work(session):
            attempts.append(1)
            raise GapUnresolvableError("B", "A")

        with pytest.raises(GapUnresolvableError):
            await run_in_transaction(
                session_maker, work, retry_delay_base=0, on_rollback=hooks.rollback
            )

        assert len(attempts) == 1
        assert hooks.calls == ["rollback"]


class TestFatalErrors:
    """Test fatal error classification."""

    def test_ingestion_halting_errors_are_fatal(self):
        assert is_fatal(PersistenceFatalError("op", 3, operational_error()))
        assert is_fatal(GapUnresolvableError("B", "A"))
        assert is_fatal(IncompatibleNodeVersionError("0.9.0", "1.0.0"))

    def test_transient_rpc_errors_are_not_fatal(self):
        assert not is_fatal(RpcConnectionError("down"))
