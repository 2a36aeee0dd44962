"""
Blockchain client.

Cashback transfers (native or ERC-20), gas estimation, balances, receipt
lookups and health checks across all configured networks.
"""

import asyncio
from decimal import Decimal
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import TransactionNotFound

from settlement.config.constants import DEFAULT_GAS_PRICE_WEI, NATIVE_DECIMALS, NATIVE_TRANSFER_GAS
from settlement.contracts.abis import ERC20_ABI
from settlement.services.blockchain.error_mapping import translate_rpc_error
from settlement.services.blockchain.network_registry import NetworkHandle, NetworkRegistry
from settlement.services.blockchain.rpc_wrapper import with_timeout
from settlement.services.blockchain.transaction_sender import BuildTransaction, EstimateGas, TransactionSender
from settlement.services.blockchain.types import (
    ConfirmedTransaction,
    GasEstimate,
    OnSigned,
    ReceiptSummary,
    TransferResult,
    to_hex_str,
)
from settlement.utils.exceptions import InsufficientFundsError, InvalidAddressError, SettlementError
from settlement.utils.security import mask_address, mask_tx_hash
from settlement.utils.validation import from_base_units, to_base_units, validate_wallet_address


class BlockchainClient:
    """
    Multi-network blockchain client.

    Features:
    - Native and ERC-20 cashback transfers
    - Balance pre-checks before submission
    - Receipt lookup for reconciliation
    - Per-network health checks
    """

    def __init__(self, registry: NetworkRegistry, sender: TransactionSender | None = None) -> None:
        self.registry = registry
        self.sender = sender or TransactionSender(registry)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    async def send_cashback(
        self,
        to_address: str,
        amount: Decimal,
        network: str,
        on_signed: OnSigned | None = None,
    ) -> TransferResult:
        """
        Send cashback to a wallet.

        Uses the network's token contract when one is configured, otherwise
        a native value transfer.

        Args:
            to_address: Recipient wallet
            amount: Amount in human units (tokens or native coin)
            network: Network name
            on_signed: Awaited after signing, before broadcast

        Returns:
            TransferResult

        Raises:
            UnsupportedNetworkError: Network not configured
            WalletNotConfiguredError: Network has no signing key
            InvalidAddressError: Malformed recipient
            InsufficientFundsError: Signer balance too low
            SettlementError: Other translated send failures
        """
        handle = self.registry.signer(network)
        recipient = self._checksum(to_address)

        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Cashback amount must be positive, got {amount}")

        logger.info(
            f"Sending {amount} cashback to {mask_address(recipient)} on {handle.name} "
            f"({'token' if handle.config.uses_token else 'native'} transfer)"
        )

        if handle.config.uses_token:
            return await self._send_token(handle, recipient, amount, on_signed)
        return await self._send_native(handle, recipient, amount, on_signed)

    async def _send_native(
        self,
        handle: NetworkHandle,
        recipient: str,
        amount: Decimal,
        on_signed: OnSigned | None,
    ) -> TransferResult:
        value = to_base_units(amount, NATIVE_DECIMALS)
        symbol = handle.config.native_symbol

        try:
            balance, gas_price = await asyncio.gather(
                with_timeout(
                    handle.web3.eth.get_balance(handle.address),
                    operation_name="get signer balance",
                    network=handle.name,
                ),
                self.sender.get_gas_price(handle),
            )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        required = value + gas_price * NATIVE_TRANSFER_GAS
        if balance < required:
            raise InsufficientFundsError(
                required=from_base_units(required, NATIVE_DECIMALS),
                available=from_base_units(balance, NATIVE_DECIMALS),
                symbol=symbol,
            )

        async def build(params: dict[str, Any]) -> dict[str, Any]:
            return {**params, "to": recipient, "value": value}

        def estimate() -> Any:
            return handle.web3.eth.estimate_gas(
                {"from": handle.address, "to": recipient, "value": value}
            )

        transaction = await self.sender.submit(
            handle,
            build,
            to_address=recipient,
            value=value,
            estimate=estimate,
            on_signed=on_signed,
            label=f"native transfer of {amount} {symbol}",
        )
        return TransferResult(transaction=transaction, amount=amount, symbol=symbol)

    async def _send_token(
        self,
        handle: NetworkHandle,
        recipient: str,
        amount: Decimal,
        on_signed: OnSigned | None,
    ) -> TransferResult:
        token_address = Web3.to_checksum_address(handle.config.token_address)
        contract = handle.web3.eth.contract(address=token_address, abi=ERC20_ABI)

        try:
            decimals, balance, symbol = await asyncio.gather(
                with_timeout(contract.functions.decimals().call(), operation_name="token decimals", network=handle.name),
                with_timeout(
                    contract.functions.balanceOf(handle.address).call(),
                    operation_name="token balance",
                    network=handle.name,
                ),
                with_timeout(contract.functions.symbol().call(), operation_name="token symbol", network=handle.name),
            )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        units = to_base_units(amount, decimals)
        if balance < units:
            raise InsufficientFundsError(
                required=amount,
                available=from_base_units(balance, decimals),
                symbol=symbol,
            )

        transfer = contract.functions.transfer(recipient, units)
        transaction = await self.sender.submit(
            handle,
            transfer.build_transaction,
            to_address=recipient,
            value=units,
            estimate=lambda: transfer.estimate_gas({"from": handle.address}),
            on_signed=on_signed,
            label=f"token transfer of {amount} {symbol}",
        )
        return TransferResult(
            transaction=transaction,
            amount=amount,
            symbol=symbol,
            token_address=token_address,
        )

    async def submit(
        self,
        handle: NetworkHandle,
        build: BuildTransaction,
        to_address: str | None,
        value: int = 0,
        estimate: EstimateGas | None = None,
        on_signed: OnSigned | None = None,
        label: str = "transaction",
    ) -> ConfirmedTransaction:
        """Sign, broadcast and confirm an arbitrary transaction (see TransactionSender.submit)."""
        return await self.sender.submit(
            handle,
            build,
            to_address=to_address,
            value=value,
            estimate=estimate,
            on_signed=on_signed,
            label=label,
        )

    # ------------------------------------------------------------------
    # Read-only helpers
    # ------------------------------------------------------------------

    async def estimate_gas(self, to_address: str, amount: Decimal, network: str) -> GasEstimate:
        """
        Estimate cost of a cashback transfer.

        Gas price falls back to 5 gwei when the node cannot report one.
        """
        handle = self.registry.signer(network)
        recipient = self._checksum(to_address)

        try:
            gas_price = await self.sender.get_gas_price(handle)
        except SettlementError as e:
            logger.warning(f"{handle.name}: gas price unavailable ({e}), using default")
            gas_price = DEFAULT_GAS_PRICE_WEI

        try:
            if handle.config.uses_token:
                contract = handle.web3.eth.contract(
                    address=Web3.to_checksum_address(handle.config.token_address), abi=ERC20_ABI
                )
                decimals = await with_timeout(contract.functions.decimals().call(), network=handle.name)
                gas_limit = await with_timeout(
                    contract.functions.transfer(recipient, to_base_units(amount, decimals)).estimate_gas(
                        {"from": handle.address}
                    ),
                    operation_name="estimate token transfer",
                    network=handle.name,
                )
            else:
                gas_limit = await with_timeout(
                    handle.web3.eth.estimate_gas(
                        {
                            "from": handle.address,
                            "to": recipient,
                            "value": to_base_units(amount, NATIVE_DECIMALS),
                        }
                    ),
                    operation_name="estimate native transfer",
                    network=handle.name,
                )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        return GasEstimate(
            gas_limit=gas_limit,
            gas_price=gas_price,
            estimated_cost=from_base_units(gas_limit * gas_price, NATIVE_DECIMALS),
            symbol=handle.config.native_symbol,
        )

    async def get_balance(self, address: str, network: str) -> Decimal:
        """Native balance of an address in human units."""
        handle = self.registry.get(network)
        try:
            balance = await with_timeout(
                handle.web3.eth.get_balance(self._checksum(address)),
                operation_name="get balance",
                network=handle.name,
            )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e
        return from_base_units(balance, NATIVE_DECIMALS)

    async def get_token_balance(self, address: str, token_address: str, network: str) -> Decimal:
        """ERC-20 balance of an address in human units."""
        handle = self.registry.get(network)
        contract = handle.web3.eth.contract(address=self._checksum(token_address), abi=ERC20_ABI)
        try:
            balance, decimals = await asyncio.gather(
                with_timeout(
                    contract.functions.balanceOf(self._checksum(address)).call(),
                    operation_name="token balance",
                    network=handle.name,
                ),
                with_timeout(contract.functions.decimals().call(), operation_name="token decimals", network=handle.name),
            )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e
        return from_base_units(balance, decimals)

    async def get_receipt(self, tx_hash: str, network: str) -> ReceiptSummary | None:
        """
        Get receipt of a transaction.

        Returns:
            ReceiptSummary, or None if the transaction is not mined (or unknown)
        """
        handle = self.registry.get(network)
        try:
            receipt = await with_timeout(
                handle.web3.eth.get_transaction_receipt(tx_hash),
                operation_name="get transaction receipt",
                network=handle.name,
            )
        except TransactionNotFound:
            return None
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        if receipt is None:
            return None
        return ReceiptSummary.from_receipt(receipt)

    async def verify_transaction(self, tx_hash: str, network: str) -> bool:
        """
        Check that a transaction is mined and succeeded.

        A missing receipt means "not yet known" and returns False.
        """
        receipt = await self.get_receipt(tx_hash, network)
        if receipt is None:
            logger.debug(f"{network}: no receipt yet for {mask_tx_hash(tx_hash)}")
            return False
        return receipt.succeeded

    async def is_known_to_node(self, tx_hash: str, network: str) -> bool:
        """True if the node knows the transaction (mined or in mempool)."""
        handle = self.registry.get(network)
        try:
            await with_timeout(
                handle.web3.eth.get_transaction(tx_hash),
                operation_name="get transaction",
                network=handle.name,
            )
        except TransactionNotFound:
            return False
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e
        return True

    async def get_confirmed_nonce(self, address: str, network: str) -> int:
        handle = self.registry.get(network)
        try:
            return await self.sender.nonce_manager.get_confirmed_nonce(
                handle.web3, self._checksum(address), handle.name
            )
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

    async def get_transaction_info(self, tx_hash: str, network: str) -> dict[str, Any] | None:
        """
        Transaction details merged with receipt data.

        Returns:
            Dict with hash, from, to, value, nonce, status and receipt fields,
            or None if the node does not know the transaction
        """
        handle = self.registry.get(network)
        try:
            transaction = await with_timeout(
                handle.web3.eth.get_transaction(tx_hash),
                operation_name="get transaction",
                network=handle.name,
            )
        except TransactionNotFound:
            return None
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        receipt = await self.get_receipt(tx_hash, network)
        if receipt is None:
            status = "pending"
        else:
            status = "confirmed" if receipt.succeeded else "failed"

        return {
            "hash": to_hex_str(transaction["hash"]),
            "from": transaction["from"],
            "to": transaction.get("to"),
            "value": from_base_units(transaction.get("value", 0), NATIVE_DECIMALS),
            "nonce": transaction["nonce"],
            "gas_price": transaction.get("gasPrice"),
            "status": status,
            "block_number": receipt.block_number if receipt else None,
            "gas_used": receipt.gas_used if receipt else None,
            "gas_fee": receipt.gas_fee if receipt else None,
        }

    async def health_check(self) -> dict[str, dict[str, Any]]:
        """
        Query latest block on every configured network.

        Returns:
            {network: {"status": "healthy", "block_number": int}} or
            {network: {"status": "unhealthy", "error": str}}
        """

        async def check(network: str) -> tuple[str, dict[str, Any]]:
            try:
                handle = self.registry.get(network)
                block_number = await with_timeout(
                    handle.web3.eth.block_number,
                    operation_name=f"{network} block number",
                    network=network,
                )
                return network, {"status": "healthy", "block_number": block_number}
            except Exception as e:
                logger.warning(f"Health check failed for {network}: {e}")
                return network, {"status": "unhealthy", "error": str(e) or type(e).__name__}

        results = await asyncio.gather(*(check(network) for network in self.registry.networks))
        return dict(results)

    def get_wallet_address(self, network: str) -> str | None:
        return self.registry.get(network).address

    def is_network_supported(self, network: str | None) -> bool:
        return self.registry.is_supported(network)

    def supported_networks(self) -> list[str]:
        return self.registry.networks

    @staticmethod
    def _checksum(address: str | None) -> str:
        is_valid, error = validate_wallet_address(address)
        if not is_valid:
            raise InvalidAddressError(address, error or "invalid address format")
        return Web3.to_checksum_address(address.strip())
