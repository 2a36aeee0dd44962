"""
RPC error translation.

Maps web3/transport failures onto the settlement error taxonomy.
"""

import aiohttp
from web3.exceptions import ContractLogicError

from settlement.utils.exceptions import (
    BlockchainNetworkError,
    InsufficientFundsError,
    NonceExpiredError,
    SettlementError,
    TransactionFailedError,
    TransactionRevertedError,
)

INSUFFICIENT_FUNDS_MARKERS = ("insufficient funds",)
NONCE_MARKERS = (
    "nonce too low",
    "nonce has already been used",
    "nonce expired",
    "replacement transaction underpriced",
)
REVERT_MARKERS = ("execution reverted", "revert")
ALREADY_KNOWN_MARKERS = ("already known", "known transaction")


def is_already_known(exc: Exception) -> bool:
    """Broadcast rejected because the node already holds this exact transaction."""
    message = str(exc).lower()
    return any(marker in message for marker in ALREADY_KNOWN_MARKERS)


def translate_rpc_error(exc: Exception, network: str | None = None) -> SettlementError:
    """
    Translate a low-level error.

    Args:
        exc: Error raised by web3, aiohttp or the event loop
        network: Network name for context

    Returns:
        Equivalent SettlementError (the original if it already is one)
    """
    if isinstance(exc, SettlementError):
        return exc

    message = str(exc) or type(exc).__name__
    lowered = message.lower()

    if any(marker in lowered for marker in INSUFFICIENT_FUNDS_MARKERS):
        return InsufficientFundsError(f"Insufficient funds on {network}: {message}")
    if any(marker in lowered for marker in NONCE_MARKERS):
        return NonceExpiredError(f"Nonce expired on {network}: {message}")
    if isinstance(exc, ContractLogicError) or any(marker in lowered for marker in REVERT_MARKERS):
        return TransactionRevertedError(f"Execution reverted: {message}")
    if isinstance(exc, (OSError, aiohttp.ClientError)):
        return BlockchainNetworkError(f"Network error on {network}: {message}", network=network)
    return TransactionFailedError(f"Transaction failed on {network}: {message}")
