"""Tests for address, hash and amount validation utilities."""

from decimal import Decimal

from settlement.utils.security import mask_address, mask_tx_hash
from settlement.utils.validation import (
    ZERO_ADDRESS,
    from_base_units,
    to_base_units,
    validate_transaction_hash,
    validate_wallet_address,
)


class TestWalletAddressValidation:
    """Test wallet address validation."""

    def test_valid_address(self):
        """Test valid lowercase address."""
        is_valid, error = validate_wallet_address("0x70997970c51812dc3a010c7d01b50e0d17dc79c8")
        assert is_valid is True
        assert error is None

    def test_valid_checksum_address(self):
        """Test valid checksummed address."""
        is_valid, error = validate_wallet_address("0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266")
        assert is_valid is True
        assert error is None

    def test_surrounding_whitespace_is_ignored(self):
        is_valid, _ = validate_wallet_address("  0x70997970c51812dc3a010c7d01b50e0d17dc79c8 ")
        assert is_valid is True

    def test_empty_address(self):
        """Test empty and missing address."""
        assert validate_wallet_address("") == (False, "Address is empty")
        assert validate_wallet_address(None) == (False, "Address is empty")

    def test_address_without_prefix(self):
        """Test address without 0x prefix."""
        is_valid, error = validate_wallet_address("70997970c51812dc3a010c7d01b50e0d17dc79c8")
        assert is_valid is False
        assert error == "Address must start with 0x"

    def test_short_address(self):
        """Test short address."""
        is_valid, error = validate_wallet_address("0x1234")
        assert is_valid is False
        assert error == "Address must be 42 characters"

    def test_non_hex_address(self):
        """Test address with non-hex characters."""
        is_valid, error = validate_wallet_address("0x" + "g" * 40)
        assert is_valid is False
        assert error == "Invalid address format"

    def test_zero_address_rejected(self):
        """Zero address can never receive cashback."""
        is_valid, error = validate_wallet_address(ZERO_ADDRESS)
        assert is_valid is False
        assert error == "Zero address is not allowed"


class TestTransactionHashValidation:
    """Test transaction hash validation."""

    def test_valid_hash(self, sample_transaction_hash):
        assert validate_transaction_hash(sample_transaction_hash) is True

    def test_invalid_hashes(self):
        assert validate_transaction_hash(None) is False
        assert validate_transaction_hash("0x1234") is False
        assert validate_transaction_hash("1234567890abcdef" * 4) is False
        assert validate_transaction_hash("0x" + "z" * 64) is False


class TestBaseUnitConversion:
    """Test human amount <-> base unit conversion."""

    def test_to_base_units(self):
        assert to_base_units(Decimal("1.5"), 18) == 1_500_000_000_000_000_000
        assert to_base_units(Decimal("10"), 6) == 10_000_000

    def test_to_base_units_rounds_down(self):
        """Sub-unit dust is truncated, never rounded up."""
        assert to_base_units(Decimal("1.0000009"), 6) == 1_000_000

    def test_from_base_units_is_exact(self):
        """No float precision loss for 18-decimal values."""
        assert from_base_units(123_456_789_012_345_678_901, 18) == Decimal("123.456789012345678901")

    def test_from_base_units_zero(self):
        assert from_base_units(0, 18) == Decimal("0")


class TestMasking:
    """Test log masking helpers."""

    def test_mask_address(self):
        assert mask_address("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
        assert mask_address(None) == "***"
        assert mask_address("0x12") == "***"

    def test_mask_tx_hash(self, sample_transaction_hash):
        assert mask_tx_hash(sample_transaction_hash) == "0x12345678...abcdef"
        assert mask_tx_hash(None) == "***"
