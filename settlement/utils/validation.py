"""Validation utilities for addresses, hashes and amounts."""

from decimal import ROUND_DOWN, Decimal, localcontext

from loguru import logger
from web3 import Web3


# Zero address - never a valid cashback recipient
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def validate_wallet_address(address: str | None) -> tuple[bool, str | None]:
    """
    Validate wallet address.

    Args:
        address: Wallet address to validate

    Returns:
        Tuple of (is_valid, error_message)

    Examples:
        >>> validate_wallet_address("0x1234567890123456789012345678901234567890")
        (True, None)
        >>> validate_wallet_address("invalid")
        (False, 'Address must start with 0x')
    """
    if not address or not isinstance(address, str):
        return False, "Address is empty"

    address = address.strip()

    if not address.startswith("0x"):
        return False, "Address must start with 0x"

    if len(address) != 42:
        return False, "Address must be 42 characters"

    try:
        int(address[2:], 16)
    except ValueError:
        return False, "Invalid address format"

    if address.lower() == ZERO_ADDRESS:
        return False, "Zero address is not allowed"

    try:
        Web3.to_checksum_address(address)
        return True, None
    except (ValueError, TypeError) as e:
        logger.debug(f"Address validation failed for {address}: {e}")
        return False, "Invalid address format"


def validate_transaction_hash(tx_hash: str | None) -> bool:
    """
    Validate transaction hash.

    Args:
        tx_hash: Transaction hash

    Returns:
        True if 0x-prefixed 32-byte hex
    """
    if not tx_hash or not isinstance(tx_hash, str):
        return False

    if not tx_hash.startswith("0x") or len(tx_hash) != 66:
        return False

    try:
        int(tx_hash[2:], 16)
        return True
    except ValueError:
        return False


def to_base_units(amount: Decimal, decimals: int) -> int:
    """Convert a human amount to integer base units, rounding down."""
    # Use Decimal arithmetic throughout to avoid float precision errors
    return int((Decimal(str(amount)) * Decimal(10 ** decimals)).to_integral_value(ROUND_DOWN))


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert integer base units to an exact Decimal amount."""
    with localcontext() as ctx:
        ctx.prec = 80
        return Decimal(int(value)) / Decimal(10 ** decimals)
