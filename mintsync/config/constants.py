"""
Application constants.

Centralized constants for the synchronization engine.
"""

# ========================================================================
# LEDGER CONSTANTS
# ========================================================================

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Ledger call timeouts (in seconds)
LEDGER_TIMEOUT = 20.0  # Single ownerOf / tokenURI / getLogs call
LEDGER_EXECUTOR_WORKERS = 4  # Thread pool size for sync Web3 calls

# Ledger retry settings: 1s, 2s, 4s
LEDGER_MAX_RETRIES = 3
LEDGER_RETRY_DELAY_BASE = 1.0

# ========================================================================
# EVENT SCAN CONSTANTS
# ========================================================================

SCAN_CHUNK_SIZE = 2000  # Blocks per getLogs request
SCAN_PROGRESS_LOG_EVERY = 10  # Log progress every N chunks

# ========================================================================
# TOKEN DISCOVERY CONSTANTS
# ========================================================================

DISCOVERY_UPPER_BOUND = 1000  # Initial binary search bound without totalSupply
DISCOVERY_MAX_UPPER_BOUND = 1_000_000  # Stop doubling the bound past this
ABSENCE_CONFIRMATIONS = 2  # Definitive reverts before an ID counts as absent
PROBE_MAX_ATTEMPTS = 3  # Attempts per probe before it is inconclusive
RECONCILE_SCAN_DELAY = 0.2  # Delay between exhaustive-scan calls (seconds)

# ========================================================================
# PENDING MINT CONSTANTS
# ========================================================================

PENDING_SWEEP_BATCH_SIZE = 50
PENDING_CLAIM_LEASE_SECONDS = 300
PENDING_ALERT_AFTER_ATTEMPTS = 10  # Escalate (log critical) at this retry count
PENDING_RETRY_DELAY_SECONDS = 1.0  # Pause between entries within a sweep
PENDING_ERROR_MAX_LENGTH = 2000

# ========================================================================
# QUEST CONSTANTS
# ========================================================================

# Store write retry: three attempts total, 1s then 2s between them
QUEST_WRITE_MAX_ATTEMPTS = 3
QUEST_WRITE_RETRY_DELAY_BASE = 1.0

# Points are fixed-point (points * 100)
BASE_TRANSACTION_QUEST_ID = 1
BASE_TRANSACTION_POINTS = 100

# ========================================================================
# METADATA CONSTANTS
# ========================================================================

DATA_URI_JSON_BASE64_PREFIX = "data:application/json;base64,"
DEFAULT_TITLE_TEMPLATE = "TravelNFT #{token_id}"
DEFAULT_LOCATION = "Unknown Location"
DEFAULT_CATEGORY = "travel"

# Preferred gateway first, fallbacks after
IPFS_GATEWAYS = (
    "https://nftstorage.link/ipfs",
    "https://ipfs.io/ipfs",
    "https://cloudflare-ipfs.com/ipfs",
    "https://gateway.pinata.cloud/ipfs",
)
METADATA_FETCH_TIMEOUT = 15.0
