"""
Transaction sender.

Builds, signs, broadcasts and confirms one transaction while holding the
signer lock of its (network, address) pair.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import TimeExhausted

from settlement.config.constants import GAS_ESTIMATE_BUFFER
from settlement.services.blockchain.error_mapping import is_already_known, translate_rpc_error
from settlement.services.blockchain.network_registry import NetworkHandle, NetworkRegistry
from settlement.services.blockchain.nonce_manager import NonceManager
from settlement.services.blockchain.rpc_wrapper import with_timeout
from settlement.services.blockchain.types import (
    ConfirmedTransaction,
    OnSigned,
    ReceiptSummary,
    SignedSubmission,
    to_hex_str,
)
from settlement.utils.exceptions import (
    BlockchainTimeoutError,
    ConfirmationTimeoutError,
    SettlementError,
    TransactionRevertedError,
)
from settlement.utils.security import mask_address, mask_tx_hash

BuildTransaction = Callable[[dict[str, Any]], Awaitable[dict[str, Any]]]
EstimateGas = Callable[[], Awaitable[int]]


class TransactionSender:
    """
    Sends transactions for any configured network.

    Features:
    - Per-signer serialization (nonce safety)
    - Gas estimation with 20% buffer and gas price cap
    - on_signed hook between signing and broadcast
    - Receipt wait for exactly one confirmation
    """

    def __init__(self, registry: NetworkRegistry, nonce_manager: NonceManager | None = None) -> None:
        self.registry = registry
        self.nonce_manager = nonce_manager or NonceManager()

    async def get_gas_price(self, handle: NetworkHandle) -> int:
        """Current gas price capped at the configured maximum."""
        gas_price = await with_timeout(
            handle.web3.eth.gas_price,
            operation_name=f"{handle.name} gas price",
            network=handle.name,
        )
        max_gas_price = Web3.to_wei(handle.config.max_gas_price_gwei, "gwei")
        if gas_price > max_gas_price:
            logger.warning(
                f"{handle.name}: gas price {gas_price} exceeds max {max_gas_price}, using max"
            )
            gas_price = max_gas_price
        return int(gas_price)

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
        """
        Submit a transaction and wait for its receipt.

        Args:
            handle: Signer handle
            build: Completes the base fields (from, nonce, gas, gasPrice, chainId)
                into a signable transaction dict
            to_address: Recipient recorded for the submission (None for deployment)
            value: Amount moved in base units, recorded for the submission
            estimate: Gas estimator; the configured gas limit is used without one
            on_signed: Awaited after signing and before broadcast
            label: Operation name for logs

        Returns:
            ConfirmedTransaction with receipt data

        Raises:
            TransactionRevertedError: Receipt status 0 or revert during estimation
            ConfirmationTimeoutError: Broadcast but not confirmed in time
            SettlementError: Any other translated RPC failure
        """
        async with self.registry.signer_lock(handle):
            signed, submission = await self._prepare(handle, build, to_address, value, estimate, label)

            if on_signed is not None:
                await on_signed(submission)

            receipt = await self._broadcast_and_wait(handle, signed, submission)

        if not receipt.succeeded:
            logger.error(
                f"{handle.name}: {label} {mask_tx_hash(submission.tx_hash)} reverted "
                f"in block {receipt.block_number}"
            )
            raise TransactionRevertedError(
                f"{label} reverted in block {receipt.block_number}",
                tx_hash=submission.tx_hash,
            )

        confirmed = ConfirmedTransaction(
            network=handle.name,
            tx_hash=submission.tx_hash,
            nonce=submission.nonce,
            from_address=submission.from_address,
            to_address=submission.to_address,
            value=submission.value,
            block_number=receipt.block_number,
            block_hash=receipt.block_hash,
            gas_used=receipt.gas_used,
            effective_gas_price=receipt.effective_gas_price or submission.gas_price,
            contract_address=receipt.contract_address,
        )
        logger.success(
            f"{handle.name}: {label} confirmed\n"
            f"  TX: {confirmed.tx_hash}\n"
            f"  Block: {confirmed.block_number}\n"
            f"  Gas fee: {confirmed.gas_fee} {handle.config.native_symbol}"
        )
        return confirmed

    async def _prepare(
        self,
        handle: NetworkHandle,
        build: BuildTransaction,
        to_address: str | None,
        value: int,
        estimate: EstimateGas | None,
        label: str,
    ) -> tuple[Any, SignedSubmission]:
        try:
            nonce = await self.nonce_manager.get_safe_nonce(handle.web3, handle.address, handle.name)
            logger.debug(f"Acquired nonce {nonce} for {mask_address(handle.address)} on {handle.name}")

            gas_price = await self.get_gas_price(handle)
            gas_limit = await self._estimate_gas_limit(handle, estimate, label)

            transaction = await with_timeout(
                build(
                    {
                        "from": handle.address,
                        "nonce": nonce,
                        "gas": gas_limit,
                        "gasPrice": gas_price,
                        "chainId": handle.config.chain_id,
                    }
                ),
                operation_name=f"build {label}",
                network=handle.name,
            )
            signed = handle.sign_transaction(transaction)
        except SettlementError:
            raise
        except Exception as e:
            raise translate_rpc_error(e, handle.name) from e

        submission = SignedSubmission(
            network=handle.name,
            tx_hash=to_hex_str(signed.hash),
            nonce=nonce,
            from_address=handle.address,
            to_address=to_address,
            value=value,
            gas_limit=gas_limit,
            gas_price=gas_price,
        )
        logger.info(
            f"{handle.name}: signed {label} {mask_tx_hash(submission.tx_hash)} "
            f"(nonce={nonce}, gas={gas_limit}, gasPrice={gas_price})"
        )
        return signed, submission

    async def _estimate_gas_limit(
        self, handle: NetworkHandle, estimate: EstimateGas | None, label: str
    ) -> int:
        if estimate is None:
            return handle.config.gas_limit
        try:
            gas_estimate = await with_timeout(
                estimate(),
                operation_name=f"estimate gas for {label}",
                network=handle.name,
            )
        except BlockchainTimeoutError:
            logger.error(f"{handle.name}: timeout estimating gas, using {handle.config.gas_limit}")
            return handle.config.gas_limit
        # Add 20% buffer
        return int(gas_estimate * GAS_ESTIMATE_BUFFER)

    async def _broadcast_and_wait(
        self, handle: NetworkHandle, signed: Any, submission: SignedSubmission
    ) -> ReceiptSummary:
        try:
            try:
                await with_timeout(
                    handle.web3.eth.send_raw_transaction(signed.raw_transaction),
                    operation_name="send raw transaction",
                    network=handle.name,
                )
            except Exception as e:
                if not is_already_known(e):
                    raise
                logger.info(f"{handle.name}: {mask_tx_hash(submission.tx_hash)} already in mempool")

            receipt = await handle.web3.eth.wait_for_transaction_receipt(
                submission.tx_hash,
                timeout=handle.config.confirmation_timeout,
            )
        except TimeExhausted as e:
            raise ConfirmationTimeoutError(
                submission.tx_hash, handle.config.confirmation_timeout
            ) from e
        except SettlementError as e:
            attach_tx_hash(e, submission.tx_hash)
            raise
        except Exception as e:
            error = translate_rpc_error(e, handle.name)
            attach_tx_hash(error, submission.tx_hash)
            raise error from e

        return ReceiptSummary.from_receipt(receipt)


def attach_tx_hash(error: Exception, tx_hash: str) -> None:
    if isinstance(error, TransactionRevertedError) and error.tx_hash is None:
        error.tx_hash = tx_hash
