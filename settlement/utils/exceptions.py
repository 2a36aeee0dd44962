"""
Exception handling utilities.

Defines the settlement error taxonomy and categories for handling strategy.
"""

from decimal import Decimal


class SettlementError(Exception):
    """Base exception for settlement errors."""
    pass


# ========================================================================
# Validation errors - raised before any on-chain call, never mutate state
# ========================================================================


class UnsupportedNetworkError(SettlementError):
    """Network is not configured (or has no stored BlockchainNetwork row)."""

    def __init__(self, network: str | None, reason: str | None = None):
        self.network = network
        message = f"Unsupported network: {network}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class WalletNotConfiguredError(SettlementError):
    """Network has no signing key and is read-only."""

    def __init__(self, network: str):
        self.network = network
        super().__init__(f"Wallet not configured for network {network}")


class InvalidAddressError(SettlementError):
    """Malformed or missing recipient address."""

    def __init__(self, address: str | None, reason: str = "invalid address format"):
        self.address = address
        super().__init__(f"Invalid address {address!r}: {reason}")


# ========================================================================
# Send errors - translated from RPC/web3 failures
# ========================================================================


class InsufficientFundsError(SettlementError):
    """Signer balance does not cover the transfer."""

    def __init__(
        self,
        message: str = "Insufficient funds for transaction",
        required: Decimal | None = None,
        available: Decimal | None = None,
        symbol: str | None = None,
    ):
        self.required = required
        self.available = available
        self.symbol = symbol
        if required is not None and available is not None:
            message = f"{message}: required {required} {symbol or ''}, available {available} {symbol or ''}".rstrip()
        super().__init__(message)


class BlockchainNetworkError(SettlementError):
    """RPC endpoint unreachable or erroring."""

    def __init__(self, message: str, network: str | None = None):
        self.network = network
        super().__init__(message)


class BlockchainTimeoutError(BlockchainNetworkError):
    """Raised when blockchain RPC call times out."""
    pass


class NonceExpiredError(SettlementError):
    """Nonce already used or replaced."""
    pass


class TransactionRevertedError(SettlementError):
    """Transaction reverted (receipt status 0 or revert during estimation)."""

    def __init__(self, message: str, tx_hash: str | None = None):
        self.tx_hash = tx_hash
        super().__init__(message)


class ConfirmationTimeoutError(SettlementError):
    """Broadcast transaction not confirmed within the wait window."""

    def __init__(self, tx_hash: str, timeout: float):
        self.tx_hash = tx_hash
        self.timeout = timeout
        super().__init__(f"Transaction {tx_hash} not confirmed after {timeout}s")


class TransactionFailedError(SettlementError):
    """Generic send failure."""
    pass


# ========================================================================
# Contract errors
# ========================================================================


class ContractDeploymentError(SettlementError):
    """Contract deployment or verification failed."""

    def __init__(self, message: str, contract_type: str, network_id: int | None):
        self.contract_type = contract_type
        self.network_id = network_id
        super().__init__(f"Failed to deploy {contract_type} on network {network_id}: {message}")


class ContractInteractionError(SettlementError):
    """Contract method missing from the interface or the call reverted."""

    def __init__(self, message: str, address: str, method: str, tx_hash: str | None = None):
        self.address = address
        self.method = method
        self.tx_hash = tx_hash
        super().__init__(f"Contract call {method} on {address} failed: {message}")


# ========================================================================
# Lookup / payload errors
# ========================================================================


class InvalidWebhookPayloadError(SettlementError):
    """Webhook payload is missing mandatory fields or malformed."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Invalid webhook payload: {'; '.join(errors)}")


class CashbackNotFoundError(SettlementError):
    def __init__(self, cashback_id: int):
        self.cashback_id = cashback_id
        super().__init__(f"Cashback {cashback_id} not found")


class TransactionNotTrackedError(SettlementError):
    def __init__(self, tx_hash: str):
        self.tx_hash = tx_hash
        super().__init__(f"Transaction {tx_hash} is not tracked locally")


class ClaimLostError(SettlementError):
    """Cashback left PROCESSING while its transfer was being signed."""

    def __init__(self, cashback_id: int, tx_hash: str):
        self.cashback_id = cashback_id
        self.tx_hash = tx_hash
        super().__init__(
            f"Cashback {cashback_id} is no longer PROCESSING, {tx_hash} not broadcast"
        )


class CashbackOwnershipError(SettlementError):
    """Cashback belongs to another user."""

    def __init__(self, cashback_id: int, user_id: int):
        self.cashback_id = cashback_id
        self.user_id = user_id
        super().__init__(f"Cashback {cashback_id} does not belong to user {user_id}")


class CashbackNotClaimableError(SettlementError):
    """Cashback is not COMPLETED or the manager holds nothing to claim."""

    def __init__(self, cashback_id: int, reason: str):
        self.cashback_id = cashback_id
        self.reason = reason
        super().__init__(f"Cashback {cashback_id} cannot be claimed: {reason}")


class InvalidStateTransitionError(SettlementError):
    """Cashback state machine does not allow the requested transition."""

    def __init__(self, cashback_id: int, current: str, target: str):
        self.cashback_id = cashback_id
        self.current = current
        self.target = target
        super().__init__(f"Cashback {cashback_id}: transition {current} -> {target} is not allowed")


# Exception categories based on handling strategy

# Fail fast before any on-chain call, leave state untouched
VALIDATION_ERRORS = (
    UnsupportedNetworkError,
    WalletNotConfiguredError,
    InvalidAddressError,
    CashbackOwnershipError,
    CashbackNotClaimableError,
)

# Worth retrying later, the transfer itself may still succeed
TRANSIENT_ERRORS = (
    BlockchainNetworkError,
    NonceExpiredError,
    ConfirmationTimeoutError,
)


def is_validation_error(exc: Exception) -> bool:
    """
    Check if exception is a validation error.

    Args:
        exc: Exception to check

    Returns:
        True if the error was raised before any on-chain call
    """
    return isinstance(exc, VALIDATION_ERRORS)


def is_transient_error(exc: Exception) -> bool:
    """
    Check if exception is transient.

    Args:
        exc: Exception to check

    Returns:
        True if a later retry may succeed without operator action
    """
    return isinstance(exc, TRANSIENT_ERRORS)
