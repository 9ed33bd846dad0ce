"""
Exception handling utilities.

Defines categorized exception types for the ingestion pipeline.
Every exception in FATAL_ERRORS terminates the process with a
non-zero exit status.
"""


class IngestionError(Exception):
    """Base exception for ingestion failures."""


class PersistenceFatalError(IngestionError):
    """A unit of work kept failing after the bounded database retries."""

    def __init__(self, operation_name: str, attempts: int, cause: Exception) -> None:
        self.operation_name = operation_name
        self.attempts = attempts
        super().__init__(
            f"{operation_name} failed after {attempts} attempts: {cause}"
        )


class OutOfSyncError(IngestionError):
    """The index is too far behind the node to backfill a block's ancestry."""


class GapUnresolvableError(IngestionError):
    """A missing ancestor could not be obtained from the node."""

    def __init__(self, block_hash: str, missing_hash: str) -> None:
        self.block_hash = block_hash
        self.missing_hash = missing_hash
        super().__init__(
            f"Ancestor {missing_hash} of block {block_hash} is unavailable"
        )


class ChainIntegrityError(IngestionError):
    """Stored selected-parent links do not form a chain (no common ancestor)."""


class IncompatibleNodeVersionError(IngestionError):
    """The node runs a version ingestion does not support."""

    def __init__(self, node_version: str, min_version: str) -> None:
        self.node_version = node_version
        self.min_version = min_version
        super().__init__(
            f"Node version {node_version} is below the supported minimum {min_version}"
        )


# Must raise - halt ingestion and exit non-zero
FATAL_ERRORS = (
    PersistenceFatalError,
    OutOfSyncError,
    GapUnresolvableError,
    ChainIntegrityError,
    IncompatibleNodeVersionError,
)


def is_fatal(exc: BaseException) -> bool:
    """
    Check if exception must halt ingestion.

    Args:
        exc: Exception to check

    Returns:
        True if the process has to exit
    """
    return isinstance(exc, FATAL_ERRORS)
