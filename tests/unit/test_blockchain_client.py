"""Tests for BlockchainClient against the fake node."""

import asyncio
from decimal import Decimal

import pytest
from web3 import Web3

from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.network_registry import NetworkRegistry
from settlement.utils.exceptions import (
    ConfirmationTimeoutError,
    InsufficientFundsError,
    InvalidAddressError,
    NonceExpiredError,
    TransactionRevertedError,
    UnsupportedNetworkError,
    WalletNotConfiguredError,
)
from tests.conftest import SIGNER_ADDRESS, USER_WALLET
from tests.fakes import ETHER, GWEI

TOKEN_ADDRESS = "0x55d398326f99059fF775485246999027B3197955"


@pytest.fixture
def token_client(network_configs, web3_factory):
    """Client whose BSC_TESTNET pays out an ERC-20 token."""
    configs = dict(network_configs)
    configs["BSC_TESTNET"] = configs["BSC_TESTNET"].model_copy(update={"token_address": TOKEN_ADDRESS})
    return BlockchainClient(NetworkRegistry(configs, web3_factory=web3_factory))


class TestSendNativeCashback:
    """Test native coin transfers."""

    @pytest.mark.asyncio
    async def test_send_confirms_and_reports_gas(self, client, fake_eth):
        result = await client.send_cashback(USER_WALLET, Decimal("1.5"), "BSC_TESTNET")

        assert len(fake_eth.sent) == 1
        assert result.amount == Decimal("1.5")
        assert result.symbol == "tBNB"
        assert result.transaction.value == 15 * ETHER // 10
        assert result.transaction.from_address == SIGNER_ADDRESS
        assert result.transaction.to_address == Web3.to_checksum_address(USER_WALLET)
        # 21000 gas at 5 gwei
        assert result.gas_fee == Decimal("0.000105")
        assert result.block_number == fake_eth.block

    @pytest.mark.asyncio
    async def test_on_signed_runs_before_broadcast(self, client, fake_eth):
        """Intent hook sees the final hash while nothing is broadcast yet."""
        seen = []

        async def on_signed(submission):
            seen.append((submission.tx_hash, len(fake_eth.sent)))

        result = await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET", on_signed=on_signed)

        assert seen == [(result.tx_hash, 0)]
        assert result.tx_hash.startswith("0x") and len(result.tx_hash) == 66

    @pytest.mark.asyncio
    async def test_sequential_sends_use_next_nonce(self, client, fake_eth):
        first = await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")
        second = await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")

        assert (first.transaction.nonce, second.transaction.nonce) == (0, 1)
        assert first.tx_hash != second.tx_hash

    @pytest.mark.asyncio
    async def test_concurrent_sends_from_separate_registries(self, network_configs, web3_factory, fake_eth):
        """Two service graphs sharing a signer never reuse a nonce."""
        first = BlockchainClient(NetworkRegistry(network_configs, web3_factory=web3_factory))
        second = BlockchainClient(NetworkRegistry(network_configs, web3_factory=web3_factory))

        results = await asyncio.gather(
            first.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET"),
            second.send_cashback(USER_WALLET, Decimal("2"), "BSC_TESTNET"),
        )

        assert sorted(result.transaction.nonce for result in results) == [0, 1]
        assert len(fake_eth.sent) == 2

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, client, fake_eth):
        """Balance check fails before anything is signed."""
        fake_eth.balance = ETHER // 1000

        with pytest.raises(InsufficientFundsError) as exc_info:
            await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")

        assert exc_info.value.symbol == "tBNB"
        assert fake_eth.sent == []

    @pytest.mark.asyncio
    async def test_invalid_recipient(self, client, fake_eth):
        with pytest.raises(InvalidAddressError):
            await client.send_cashback("0x1234", Decimal("1"), "BSC_TESTNET")
        assert fake_eth.sent == []

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, client):
        with pytest.raises(ValueError):
            await client.send_cashback(USER_WALLET, Decimal("0"), "BSC_TESTNET")

    @pytest.mark.asyncio
    async def test_unknown_network(self, client):
        with pytest.raises(UnsupportedNetworkError):
            await client.send_cashback(USER_WALLET, Decimal("1"), "SOLANA")

    @pytest.mark.asyncio
    async def test_read_only_network(self, client):
        with pytest.raises(WalletNotConfiguredError):
            await client.send_cashback(USER_WALLET, Decimal("1"), "ETH_SEPOLIA")

    @pytest.mark.asyncio
    async def test_reverted_receipt(self, client, fake_eth):
        fake_eth.receipt_status = 0

        with pytest.raises(TransactionRevertedError) as exc_info:
            await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")

        assert exc_info.value.tx_hash in fake_eth.receipts

    @pytest.mark.asyncio
    async def test_confirmation_timeout_keeps_transaction_known(self, client, fake_eth):
        fake_eth.hold_receipts = True
        hashes = []

        async def on_signed(submission):
            hashes.append(submission.tx_hash)

        with pytest.raises(ConfirmationTimeoutError) as exc_info:
            await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET", on_signed=on_signed)

        assert exc_info.value.tx_hash == hashes[0]
        assert await client.is_known_to_node(hashes[0], "BSC_TESTNET") is True
        assert await client.verify_transaction(hashes[0], "BSC_TESTNET") is False

    @pytest.mark.asyncio
    async def test_already_known_broadcast_is_not_an_error(self, client, fake_eth):
        fake_eth.send_error = ValueError("already known")

        result = await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")

        assert result.tx_hash in fake_eth.receipts

    @pytest.mark.asyncio
    async def test_nonce_error_translated(self, client, fake_eth):
        fake_eth.send_error = ValueError("nonce too low")

        with pytest.raises(NonceExpiredError):
            await client.send_cashback(USER_WALLET, Decimal("1"), "BSC_TESTNET")


class TestSendTokenCashback:
    """Test ERC-20 transfers."""

    @pytest.mark.asyncio
    async def test_token_transfer(self, token_client, fake_eth):
        result = await token_client.send_cashback(USER_WALLET, Decimal("2.5"), "BSC_TESTNET")

        assert result.symbol == "CBT"
        assert result.token_address == TOKEN_ADDRESS
        assert fake_eth.built == [("transfer", (Web3.to_checksum_address(USER_WALLET), 25 * ETHER // 10))]
        assert len(fake_eth.sent) == 1

    @pytest.mark.asyncio
    async def test_token_balance_too_low(self, token_client, fake_eth):
        fake_eth.call_results["balanceOf"] = ETHER

        with pytest.raises(InsufficientFundsError):
            await token_client.send_cashback(USER_WALLET, Decimal("2"), "BSC_TESTNET")
        assert fake_eth.sent == []


class TestReadOnlyHelpers:
    """Test gas, balance, receipt and health helpers."""

    @pytest.mark.asyncio
    async def test_gas_price_capped(self, client, fake_eth):
        fake_eth.gas_price_wei = 500 * GWEI
        handle = client.registry.get("BSC_TESTNET")

        assert await client.sender.get_gas_price(handle) == 100 * GWEI

    @pytest.mark.asyncio
    async def test_estimate_gas(self, client, fake_eth):
        estimate = await client.estimate_gas(USER_WALLET, Decimal("1"), "BSC_TESTNET")

        assert estimate.gas_limit == 50_000
        assert estimate.gas_price == 5 * GWEI
        assert estimate.estimated_cost == Decimal("0.00025")
        assert estimate.symbol == "tBNB"

    @pytest.mark.asyncio
    async def test_get_balance(self, client, fake_eth):
        fake_eth.balance = 3 * ETHER
        assert await client.get_balance(USER_WALLET, "BSC_TESTNET") == Decimal("3")

    @pytest.mark.asyncio
    async def test_verify_transaction(self, client, fake_eth, sample_transaction_hash):
        """Missing receipt means not yet known, not failure."""
        assert await client.verify_transaction(sample_transaction_hash, "BSC_TESTNET") is False
        assert await client.get_receipt(sample_transaction_hash, "BSC_TESTNET") is None

        fake_eth.mine(sample_transaction_hash)
        assert await client.verify_transaction(sample_transaction_hash, "BSC_TESTNET") is True

    @pytest.mark.asyncio
    async def test_transaction_info(self, client, fake_eth, sample_transaction_hash):
        assert await client.get_transaction_info(sample_transaction_hash, "BSC_TESTNET") is None

        fake_eth.mine(sample_transaction_hash, status=0)
        info = await client.get_transaction_info(sample_transaction_hash, "BSC_TESTNET")

        assert info["hash"] == sample_transaction_hash
        assert info["status"] == "failed"
        assert info["gas_used"] == 21_000

    @pytest.mark.asyncio
    async def test_health_check(self, client, web3_factory):
        web3_factory.eth("BSC_TESTNET").block = 4_321
        web3_factory.eth("ETH_SEPOLIA").block_error = ConnectionError("connection refused")

        health = await client.health_check()

        assert health["BSC_TESTNET"] == {"status": "healthy", "block_number": 4_321}
        assert health["ETH_SEPOLIA"]["status"] == "unhealthy"
        assert "connection refused" in health["ETH_SEPOLIA"]["error"]

    def test_supported_networks(self, client):
        assert client.supported_networks() == ["BSC_TESTNET", "ETH_SEPOLIA"]
        assert client.get_wallet_address("BSC_TESTNET") == SIGNER_ADDRESS
        assert client.is_network_supported("ETH_SEPOLIA") is True
