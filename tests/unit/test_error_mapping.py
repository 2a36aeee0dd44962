"""Tests for RPC error translation and error categories."""

from decimal import Decimal

import aiohttp
import pytest
from web3.exceptions import ContractLogicError

from settlement.services.blockchain.error_mapping import is_already_known, translate_rpc_error
from settlement.utils.exceptions import (
    BlockchainNetworkError,
    BlockchainTimeoutError,
    ConfirmationTimeoutError,
    InsufficientFundsError,
    InvalidAddressError,
    NonceExpiredError,
    TransactionFailedError,
    TransactionRevertedError,
    UnsupportedNetworkError,
    WalletNotConfiguredError,
    is_transient_error,
    is_validation_error,
)


class TestTranslateRpcError:
    """Test mapping of node errors onto the settlement taxonomy."""

    def test_insufficient_funds(self):
        error = translate_rpc_error(ValueError("insufficient funds for gas * price + value"), "BSC_TESTNET")
        assert isinstance(error, InsufficientFundsError)
        assert "BSC_TESTNET" in str(error)

    @pytest.mark.parametrize(
        "message",
        ["nonce too low", "Nonce has already been used", "replacement transaction underpriced"],
    )
    def test_nonce_errors(self, message):
        assert isinstance(translate_rpc_error(ValueError(message)), NonceExpiredError)

    def test_contract_logic_error(self):
        error = translate_rpc_error(ContractLogicError("execution reverted: Not distributor"))
        assert isinstance(error, TransactionRevertedError)
        assert "Not distributor" in str(error)

    def test_revert_message(self):
        assert isinstance(translate_rpc_error(ValueError("execution reverted")), TransactionRevertedError)

    def test_transport_errors(self):
        """Connection problems become network errors carrying the network name."""
        error = translate_rpc_error(aiohttp.ClientConnectionError("connection refused"), "ETH_SEPOLIA")
        assert isinstance(error, BlockchainNetworkError)
        assert error.network == "ETH_SEPOLIA"

        assert isinstance(translate_rpc_error(ConnectionResetError("reset")), BlockchainNetworkError)

    def test_unknown_error(self):
        error = translate_rpc_error(RuntimeError("boom"))
        assert isinstance(error, TransactionFailedError)
        assert "boom" in str(error)

    def test_empty_message_uses_type_name(self):
        assert "RuntimeError" in str(translate_rpc_error(RuntimeError()))

    def test_settlement_error_passes_through(self):
        original = TransactionRevertedError("reverted", tx_hash="0xabc")
        assert translate_rpc_error(original) is original


class TestAlreadyKnown:
    def test_already_known(self):
        assert is_already_known(ValueError("already known")) is True
        assert is_already_known(ValueError("Known transaction: 0xabc")) is True

    def test_other_error(self):
        assert is_already_known(ValueError("nonce too low")) is False


class TestErrorCategories:
    """Test validation / transient classification."""

    def test_validation_errors(self):
        assert is_validation_error(UnsupportedNetworkError("SOLANA")) is True
        assert is_validation_error(WalletNotConfiguredError("ETH_SEPOLIA")) is True
        assert is_validation_error(InvalidAddressError("0x12")) is True
        assert is_validation_error(InsufficientFundsError()) is False

    def test_transient_errors(self):
        assert is_transient_error(BlockchainTimeoutError("timeout")) is True
        assert is_transient_error(NonceExpiredError("nonce")) is True
        assert is_transient_error(ConfirmationTimeoutError("0xabc", 120)) is True
        assert is_transient_error(TransactionRevertedError("reverted")) is False

    def test_insufficient_funds_message(self):
        error = InsufficientFundsError(required=Decimal("2"), available=Decimal("1"), symbol="tBNB")
        assert "required 2 tBNB" in str(error)
        assert "available 1 tBNB" in str(error)

    def test_unsupported_network_reason(self):
        error = UnsupportedNetworkError("BSC_TESTNET", "no active CASHBACK_MANAGER contract")
        assert str(error) == "Unsupported network: BSC_TESTNET (no active CASHBACK_MANAGER contract)"
