"""
Processing settings.

Loads configuration from environment variables using pydantic-settings.
Command line flags are layered on top by ``tgi.cli``; the resulting
``Settings`` object is passed explicitly into the ingestion pipeline.
"""

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tgi.config.constants import (
    BLOCK_BASE_CACHE_CAPACITY,
    DB_MAX_RETRIES,
    DEFAULT_RPC_PORT,
    MAINNET_NETWORK_NAME,
    NODE_SYNC_POLL_INTERVAL,
    RPC_TIMEOUT,
    TESTNET_NETWORK_PREFIX,
)

# URL schemes accepted for the connection string
_POSTGRES_SCHEMES = ("postgres", "postgresql", "postgresql+asyncpg")

# libpq sslmode values; asyncpg takes them unchanged as `ssl`
_SSLMODES = frozenset({
    "disable",
    "allow",
    "prefer",
    "require",
    "verify-ca",
    "verify-full",
})


def normalize_connection_string(connection_string: str) -> str:
    """
    Convert a libpq style DSN into an SQLAlchemy asyncpg URL.

    ``postgres://u:p@host:5432/db?sslmode=require`` becomes
    ``postgresql+asyncpg://u:p@host:5432/db?ssl=require``.
    Non-postgres URLs (e.g. sqlite+aiosqlite) are returned unchanged.

    Args:
        connection_string: DSN as given on the command line

    Returns:
        SQLAlchemy URL string
    """
    parts = urlsplit(connection_string)
    if parts.scheme not in _POSTGRES_SCHEMES:
        return connection_string

    query = []
    for key, value in parse_qsl(parts.query, keep_blank_values=True):
        if key == "sslmode":
            if value not in _SSLMODES:
                raise ValueError(f"Unsupported sslmode: {value}")
            query.append(("ssl", value))
        else:
            query.append((key, value))

    return urlunsplit(
        ("postgresql+asyncpg", parts.netloc, parts.path, urlencode(query), parts.fragment)
    )


def normalize_rpc_address(address: str) -> str:
    """
    Build the WebSocket URL of the node's RPC server.

    Adds the ``ws://`` prefix and the default port when missing.

    Args:
        address: ``host``, ``host:port`` or a full ``ws(s)://`` URL

    Returns:
        WebSocket URL
    """
    if address.startswith(("ws://", "wss://")):
        return address
    if ":" not in address:
        address = f"{address}:{DEFAULT_RPC_PORT}"
    return f"ws://{address}"


class Settings(BaseSettings):
    """Processing settings loaded from environment variables and flags."""

    # Database
    connection_string: str = Field(
        ...,
        description="PostgreSQL DSN: postgres://<user>:<password>@<host>:<port>/<database>",
    )
    database_echo: bool = False
    db_max_retries: int = Field(default=DB_MAX_RETRIES, ge=1)

    # Node RPC
    rpcserver: str = "localhost"
    rpc_timeout: float = Field(default=RPC_TIMEOUT, gt=0)
    node_sync_poll_interval: float = Field(default=NODE_SYNC_POLL_INTERVAL, ge=0)
    min_node_version: str | None = Field(
        default=None,
        description="Lowest node version ingestion may run against",
    )

    # Network
    testnet: bool = False
    netsuffix: int | None = None

    # Sync behaviour
    resync: bool = Field(
        default=False,
        description="Re-ingest every block the node knows, ignoring the sync cursor",
    )
    clear_db: bool = Field(
        default=False,
        description="Clear the database and sync from scratch",
    )
    block_cache_capacity: int = Field(default=BLOCK_BASE_CACHE_CAPACITY, gt=0)

    # Application
    log_level: str = "INFO"
    log_dir: str | None = None
    health_check_port: int | None = Field(default=None, ge=1, le=65535)

    model_config = SettingsConfigDict(
        env_prefix="TGI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("connection_string")
    @classmethod
    def validate_connection_string(cls, v: str) -> str:
        """Reject empty connection strings."""
        if not v.strip():
            raise ValueError("--connection-string is required")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Accept trace/debug/info/warn/error in any case."""
        level = v.upper()
        if level == "WARN":
            level = "WARNING"
        if level not in {"TRACE", "DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("min_node_version")
    @classmethod
    def validate_min_node_version(cls, v: str | None) -> str | None:
        """Minimum version must be dotted integers."""
        if v is not None:
            parse_version(v)
        return v

    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the configured connection string."""
        return normalize_connection_string(self.connection_string)

    @property
    def rpc_url(self) -> str:
        """WebSocket URL of the node."""
        return normalize_rpc_address(self.rpcserver)

    @property
    def network(self) -> str:
        """Network name as reported in app_config."""
        if self.testnet:
            suffix = "" if self.netsuffix is None else str(self.netsuffix)
            return f"{TESTNET_NETWORK_PREFIX}{suffix}"
        return MAINNET_NETWORK_NAME


def parse_version(version: str) -> tuple[int, ...]:
    """
    Parse a dotted version string.

    Pre-release and build suffixes (``1.2.3-dev``, ``1.2.3+abc``) are ignored.

    Raises:
        ValueError: If the numeric part is not dotted integers
    """
    core = version.strip().lstrip("v").split("-", 1)[0].split("+", 1)[0]
    try:
        return tuple(int(part) for part in core.split("."))
    except ValueError as e:
        raise ValueError(f"Invalid version: {version}") from e
