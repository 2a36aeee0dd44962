"""
Settlement Processor - Core Module.

Module: core.py
Settles one cashback record: claim, transfer, close. Also holds the
shared close-out writes used by reconciliation.
"""

from decimal import Decimal

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from settlement.config.constants import CASHBACK_TOKEN_DECIMALS
from settlement.config.settings import Settings
from settlement.models.cashback import Cashback
from settlement.models.enums import CashbackStatus, ContractType, TransactionStatus
from settlement.repositories.unit_of_work import Repositories, UnitOfWork
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.types import (
    ConfirmedTransaction,
    OnSigned,
    ReceiptSummary,
    SignedSubmission,
)
from settlement.services.contract_gateway import ContractGateway
from settlement.utils.datetime_utils import utc_now
from settlement.utils.exceptions import (
    CashbackNotFoundError,
    ClaimLostError,
    ContractInteractionError,
    InvalidAddressError,
    TransactionRevertedError,
    UnsupportedNetworkError,
)
from settlement.utils.security import mask_address, mask_tx_hash
from settlement.utils.validation import to_base_units, validate_wallet_address

from .types import SettlementResult, SettlementTarget


class SettlementCore:
    """Single-record settlement and close-out writes."""

    def __init__(
        self,
        uow: UnitOfWork,
        client: BlockchainClient,
        gateway: ContractGateway,
        settings: Settings,
    ) -> None:
        self.uow = uow
        self.client = client
        self.gateway = gateway
        self.settings = settings

    async def process_cashback(
        self, cashback_id: int, max_retries: int | None = None
    ) -> SettlementResult | None:
        """
        Settle one cashback.

        Args:
            cashback_id: Cashback ID
            max_retries: Also accept FAILED records below this retry count;
                None settles PENDING records only

        Returns:
            SettlementResult, or None if the record was not claimable,
            still has a transfer in flight, or another worker claimed it

        Raises:
            CashbackNotFoundError: Unknown ID
            InvalidAddressError / UnsupportedNetworkError / WalletNotConfiguredError:
                Raised before any state change
            SettlementError: Send failures, after the record was marked FAILED
        """
        async with self.uow.transaction() as tx:
            cashback = await tx.cashbacks.get_by_id(cashback_id)
            if cashback is None:
                raise CashbackNotFoundError(cashback_id)

            source = CashbackStatus(cashback.status)
            if not self._is_claimable(cashback, max_retries):
                logger.info(
                    f"Cashback {cashback_id} not claimable "
                    f"(status={cashback.status}, retries={cashback.retry_count})"
                )
                return None

            target = await self._resolve_target(tx, cashback)
            amount = cashback.amount
            previous_tx_hash = cashback.tx_hash

        if previous_tx_hash:
            receipt = await self.client.get_receipt(previous_tx_hash, target.network)
            if receipt is not None and receipt.succeeded:
                logger.info(
                    f"Cashback {cashback_id}: earlier transfer "
                    f"{mask_tx_hash(previous_tx_hash)} succeeded, completing without resend"
                )
                completed = await self.complete_from_receipt(receipt)
                if not completed:
                    return None
                return SettlementResult(
                    cashback_id=cashback_id,
                    tx_hash=receipt.tx_hash,
                    block_number=receipt.block_number,
                    network=target.network,
                    amount=amount,
                    gas_fee=receipt.gas_fee,
                    via_contract=target.via_contract,
                    recovered=True,
                )
            if receipt is None and await self.client.is_known_to_node(previous_tx_hash, target.network):
                logger.info(
                    f"Cashback {cashback_id}: transfer {mask_tx_hash(previous_tx_hash)} "
                    f"still pending, skipping this round"
                )
                return None

        async with self.uow.transaction() as tx:
            claimed = await tx.cashbacks.transition(
                cashback_id,
                CashbackStatus.PROCESSING,
                [source],
                max_retry_count=max_retries if source == CashbackStatus.FAILED else None,
                processed_at=utc_now(),
            )
        if not claimed:
            logger.info(f"Cashback {cashback_id} already claimed by another worker")
            return None

        logger.info(
            f"Processing cashback {cashback_id}: {amount} to "
            f"{mask_address(target.wallet_address)} on {target.network}"
            f"{' via CashbackManager' if target.via_contract else ''}"
        )

        signed: SignedSubmission | None = None

        async def record_intent(submission: SignedSubmission) -> None:
            nonlocal signed
            async with self.uow.transaction() as tx:
                await self.write_intent(tx, submission, target)
                if not await tx.cashbacks.attach_tx_hash(cashback_id, submission.tx_hash):
                    # Rolls back the intent row; the send is aborted
                    raise ClaimLostError(cashback_id, submission.tx_hash)
            signed = submission

        try:
            confirmed = await self._dispatch(target, amount, record_intent)
        except ClaimLostError as e:
            logger.warning(f"{e}, leaving it to the next sweep")
            return None
        except Exception as e:
            await self._record_failure(cashback_id, e, signed)
            raise

        try:
            async with self.uow.transaction() as tx:
                await self.write_confirmation(tx, confirmed)
                completed = await tx.cashbacks.transition(
                    cashback_id,
                    CashbackStatus.COMPLETED,
                    [CashbackStatus.PROCESSING],
                    tx_hash=confirmed.tx_hash,
                    block_number=confirmed.block_number,
                    completed_at=utc_now(),
                )
        except SQLAlchemyError:
            logger.exception(
                f"Cashback {cashback_id}: transfer {confirmed.tx_hash} confirmed but "
                f"completion write failed, left PROCESSING for reconciliation"
            )
            raise

        if not completed:
            logger.warning(
                f"Cashback {cashback_id} left PROCESSING before completion write "
                f"(tx {confirmed.tx_hash}), the next retry completes it from the receipt"
            )
            return None

        logger.success(
            f"Cashback {cashback_id} completed: {amount} on {target.network}, "
            f"tx {confirmed.tx_hash}, block {confirmed.block_number}"
        )
        return SettlementResult(
            cashback_id=cashback_id,
            tx_hash=confirmed.tx_hash,
            block_number=confirmed.block_number,
            network=target.network,
            amount=amount,
            gas_fee=confirmed.gas_fee,
            via_contract=target.via_contract,
        )

    # ------------------------------------------------------------------
    # Close-out writes (shared with reconciliation)
    # ------------------------------------------------------------------

    async def complete_from_receipt(self, receipt: ReceiptSummary) -> bool:
        """
        Confirm a tracked transaction and complete its cashback.

        Returns:
            True if a PROCESSING or FAILED cashback was moved to COMPLETED
        """
        async with self.uow.transaction() as tx:
            await tx.blockchain_transactions.mark_confirmed(
                receipt.tx_hash,
                block_number=receipt.block_number,
                block_hash=receipt.block_hash,
                gas_used=receipt.gas_used,
                gas_price=receipt.effective_gas_price,
                gas_fee=receipt.gas_fee,
            )
            cashback = await tx.cashbacks.find_by_tx_hash(receipt.tx_hash)
            if cashback is None:
                return False
            if cashback.status not in (CashbackStatus.PROCESSING, CashbackStatus.FAILED):
                return False
            completed = await tx.cashbacks.transition(
                cashback.id,
                CashbackStatus.COMPLETED,
                [CashbackStatus(cashback.status)],
                block_number=receipt.block_number,
                completed_at=utc_now(),
            )

        if completed:
            logger.success(
                f"Cashback {cashback.id} completed from receipt of "
                f"{mask_tx_hash(receipt.tx_hash)} (block {receipt.block_number})"
            )
        return completed

    async def fail_transaction(
        self,
        tx_hash: str,
        reason: str,
        block_number: int | None = None,
        gas_used: int | None = None,
    ) -> bool:
        """
        Mark a tracked transaction FAILED and fail its PROCESSING cashback.

        Returns:
            True if a cashback was moved to FAILED
        """
        async with self.uow.transaction() as tx:
            await tx.blockchain_transactions.mark_failed(
                tx_hash, reason, block_number=block_number, gas_used=gas_used
            )
            cashback = await tx.cashbacks.find_by_tx_hash(tx_hash)
            if cashback is None or cashback.status != CashbackStatus.PROCESSING:
                return False
            failed = await tx.cashbacks.mark_failed(
                cashback.id, reason, self.settings.retry_base_delay_seconds
            )

        if failed is not None:
            logger.warning(f"Cashback {cashback.id} failed: {reason}")
        return failed is not None

    @staticmethod
    async def write_intent(
        tx: Repositories, submission: SignedSubmission, target: SettlementTarget
    ) -> None:
        values = {
            "network_id": target.network_id,
            "contract_id": target.manager_id,
            "from_address": submission.from_address,
            "to_address": submission.to_address,
            "value": str(submission.value),
            "nonce": submission.nonce,
            "status": TransactionStatus.PENDING.value,
            "gas_price": str(submission.gas_price),
            "error": None,
        }
        # Re-signing an identical dropped transaction reproduces its hash
        existing = await tx.blockchain_transactions.find_by_hash(submission.tx_hash)
        if existing is not None:
            await tx.blockchain_transactions.update(existing.id, **values)
            return
        await tx.blockchain_transactions.create(tx_hash=submission.tx_hash, **values)

    @staticmethod
    async def write_confirmation(tx: Repositories, confirmed: ConfirmedTransaction) -> None:
        await tx.blockchain_transactions.mark_confirmed(
            confirmed.tx_hash,
            block_number=confirmed.block_number,
            block_hash=confirmed.block_hash,
            gas_used=confirmed.gas_used,
            gas_price=confirmed.effective_gas_price,
            gas_fee=confirmed.gas_fee,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _is_claimable(cashback: Cashback, max_retries: int | None) -> bool:
        if cashback.status == CashbackStatus.PENDING:
            return True
        return (
            cashback.status == CashbackStatus.FAILED
            and max_retries is not None
            and cashback.retry_count < max_retries
        )

    async def _resolve_target(self, tx: Repositories, cashback: Cashback) -> SettlementTarget:
        user = await tx.users.get_by_id(cashback.user_id)

        wallet = cashback.wallet_address or (user.wallet_address if user else None)
        is_valid, error = validate_wallet_address(wallet)
        if not is_valid:
            raise InvalidAddressError(wallet, error or "missing wallet address")

        network = (
            cashback.network_identifier
            or (user.preferred_network if user else None)
            or self.settings.default_network
        ).upper()
        if not self.client.is_network_supported(network):
            raise UnsupportedNetworkError(network)

        network_row = await tx.blockchain_networks.find_by_type(network)
        if network_row is None or not network_row.is_active:
            raise UnsupportedNetworkError(network, "no active stored network")

        manager = None
        if self.settings.settlement_mode != "transfer":
            manager = await tx.smart_contracts.find_active_by_type(
                ContractType.CASHBACK_MANAGER.value, network_row.id
            )
            if manager is None and self.settings.settlement_mode == "contract":
                raise UnsupportedNetworkError(network, "no active CASHBACK_MANAGER contract")

        handle = self.client.registry.signer(network)

        return SettlementTarget(
            wallet_address=wallet.strip(),
            network=network,
            network_id=network_row.id,
            handle=handle,
            manager_id=manager.id if manager else None,
            manager_address=manager.address if manager else None,
        )

    async def _dispatch(
        self, target: SettlementTarget, amount: Decimal, on_signed: OnSigned
    ) -> ConfirmedTransaction:
        if target.via_contract:
            return await self.gateway.allocate_cashback(
                target.manager_address,
                target.wallet_address,
                to_base_units(amount, CASHBACK_TOKEN_DECIMALS),
                self.settings.cashback_campaign_id,
                target.handle,
                on_signed=on_signed,
            )

        result = await self.client.send_cashback(
            target.wallet_address, amount, target.network, on_signed=on_signed
        )
        return result.transaction

    async def _record_failure(
        self, cashback_id: int, error: Exception, signed: SignedSubmission | None
    ) -> None:
        reason = f"{type(error).__name__}: {error}"
        reverted = isinstance(error, (TransactionRevertedError, ContractInteractionError))
        logger.error(f"Cashback {cashback_id} settlement failed: {reason}")

        try:
            async with self.uow.transaction() as tx:
                await tx.cashbacks.mark_failed(
                    cashback_id, reason, self.settings.retry_base_delay_seconds
                )
                if reverted and signed is not None:
                    await tx.blockchain_transactions.mark_failed(signed.tx_hash, reason)
        except SQLAlchemyError:
            logger.exception(
                f"Could not record failure of cashback {cashback_id}, "
                f"left PROCESSING for reconciliation"
            )
