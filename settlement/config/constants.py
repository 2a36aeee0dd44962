"""
Application constants.

Centralized constants for the settlement service.
"""

from decimal import Decimal

# ========================================================================
# BLOCKCHAIN CONSTANTS
# ========================================================================

# Blockchain operation timeouts (in seconds)
BLOCKCHAIN_TIMEOUT = 30.0  # Standard RPC operations (balance, nonce, receipt lookup)
BLOCKCHAIN_RPC_TIMEOUT = 30  # RPC provider HTTP timeout
DEFAULT_CONFIRMATION_TIMEOUT = 120  # Receipt wait for a broadcast transaction

# Gas
DEFAULT_GAS_LIMIT = 100_000  # Fallback when estimation times out
NATIVE_TRANSFER_GAS = 21_000  # Intrinsic gas of a plain value transfer
GAS_ESTIMATE_BUFFER = Decimal("1.2")  # +20% on top of the node estimate
DEFAULT_GAS_PRICE_WEI = 5_000_000_000  # 5 gwei, used when the node reports none
MAX_GAS_PRICE_GWEI = Decimal("100")  # Hard cap unless overridden per settings

# Token units
NATIVE_DECIMALS = 18
CASHBACK_TOKEN_DECIMALS = 18  # CashbackManager amounts are 18-decimal units

# Nonce health
STUCK_NONCE_THRESHOLD = 5  # pending - latest above this is logged as stuck

# ========================================================================
# SETTLEMENT CONSTANTS
# ========================================================================

DEFAULT_BATCH_SIZE = 10
DEFAULT_MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 60  # 1min, 2min, 4min, ...
STUCK_PROCESSING_MINUTES = 15
MAX_FAILURE_REASON_LENGTH = 1000

# ========================================================================
# EVENT INGESTION CONSTANTS
# ========================================================================

EVENT_POLL_INTERVAL = 3.0  # Seconds between filter polls
EVENT_SWEEP_BATCH_SIZE = 500

# Distributed lock settings
DISTRIBUTED_LOCK_TIMEOUT = 300  # Lock timeout in seconds (matches actor time limit)
DISTRIBUTED_LOCK_BLOCKING_TIMEOUT = 5.0  # Time to wait for lock acquisition

# Signer lock: held for one submission (receipt wait plus surrounding RPC calls)
SIGNER_LOCK_MARGIN = 120  # Seconds added to the confirmation timeout
