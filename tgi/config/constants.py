"""
Processing constants.

Centralized constants for the ingestion pipeline.
"""

# ========================================================================
# NODE RPC CONSTANTS
# ========================================================================

# RPC operation timeouts (in seconds)
RPC_TIMEOUT = 30.0  # Standard request/response round trip
RPC_CONNECT_TIMEOUT = 10.0  # WebSocket handshake

# RPC retry settings
RPC_RETRY_DELAY_BASE = 1  # Base delay in seconds for exponential backoff
RPC_RETRY_MAX_DELAY = 60  # Backoff is capped, attempts are unbounded
RPC_MISSING_BLOCK_MAX_RETRIES = 3  # Attempts before an ancestor counts as unavailable

# Default wRPC JSON port of the node
DEFAULT_RPC_PORT = 18110

# Polling interval while the node is in IBD (in seconds)
NODE_SYNC_POLL_INTERVAL = 3.0

# ========================================================================
# PERSISTENCE CONSTANTS
# ========================================================================

# Database retry settings
DB_MAX_RETRIES = 3  # Attempts per unit of work before the process exits
DB_RETRY_DELAY_BASE = 0.5  # Base delay in seconds for exponential backoff

# Block base cache (hash -> id/height/blue score)
BLOCK_BASE_CACHE_CAPACITY = 400_000

# ========================================================================
# INGESTION CONSTANTS
# ========================================================================

# More missing ancestors than this means the index is out of sync with the node
MAX_SUPPORTED_MISSING_DEPENDENCIES = 600

# Blocks re-visited before the first unknown block when the cursor is lost
RESYNC_SAFETY_MARGIN = 3000

# Backfill loop thresholds (number of hashes returned by the node)
RESYNC_CHAIN_RECONCILE_THRESHOLD = 20  # Reconcile selected chain below this
RESYNC_NEAR_TIP_THRESHOLD = 10  # Stop backfilling below this

# Progress log frequency during backfill
RESYNC_PROGRESS_LOG_EVERY = 1000

# Block colors
COLOR_GRAY = "gray"
COLOR_RED = "red"
COLOR_BLUE = "blue"

# ========================================================================
# NETWORK CONSTANTS
# ========================================================================

MAINNET_NETWORK_NAME = "tondi-mainnet"
TESTNET_NETWORK_PREFIX = "tondi-testnet"
