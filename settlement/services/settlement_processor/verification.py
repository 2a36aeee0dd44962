"""
Settlement Processor - Verification Module.

Module: verification.py
Per-record chain checks and user-initiated claims from the CashbackManager.
"""

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from settlement.config.constants import CASHBACK_TOKEN_DECIMALS
from settlement.models.cashback import Cashback
from settlement.models.enums import CashbackStatus, ContractType
from settlement.repositories.unit_of_work import Repositories
from settlement.services.blockchain.types import SignedSubmission
from settlement.utils.exceptions import (
    BlockchainNetworkError,
    CashbackNotClaimableError,
    CashbackNotFoundError,
    CashbackOwnershipError,
    ContractInteractionError,
    InvalidAddressError,
    TransactionRevertedError,
    UnsupportedNetworkError,
)
from settlement.utils.security import mask_address, mask_tx_hash
from settlement.utils.validation import from_base_units, validate_wallet_address

from .core import SettlementCore
from .types import CashbackChainStatus, ClaimResult, SettlementTarget


class SettlementVerifier:
    """Chain lookups for single records and claims on behalf of users."""

    def __init__(self, core: SettlementCore) -> None:
        self.core = core
        self.uow = core.uow
        self.client = core.client
        self.gateway = core.gateway
        self.settings = core.settings

    async def verify_cashback_on_blockchain(self, cashback_id: int) -> bool:
        """
        Check that the cashback's transfer is mined and succeeded.

        Args:
            cashback_id: Cashback ID

        Returns:
            True for a successful receipt; False without tx_hash, without a
            receipt yet, for a reverted transfer or when the node is unreachable

        Raises:
            CashbackNotFoundError: Unknown ID
        """
        async with self.uow.transaction() as tx:
            cashback = await self._get_cashback(tx, cashback_id)
            tx_hash = cashback.tx_hash
            network = await self._transfer_network(tx, cashback)

        if not tx_hash:
            return False

        try:
            return await self.client.verify_transaction(tx_hash, network)
        except BlockchainNetworkError as e:
            logger.warning(f"Cannot verify cashback {cashback_id} on {network}: {e}")
            return False

    async def get_cashback_with_blockchain_status(self, cashback_id: int) -> CashbackChainStatus:
        """
        Stored cashback together with its transfer's on-chain details.

        Raises:
            CashbackNotFoundError: Unknown ID
            BlockchainNetworkError: Node unreachable
        """
        async with self.uow.transaction() as tx:
            cashback = await self._get_cashback(tx, cashback_id)
            network = await self._transfer_network(tx, cashback)

        blockchain_status = None
        if cashback.tx_hash:
            blockchain_status = await self.client.get_transaction_info(cashback.tx_hash, network)
        return CashbackChainStatus(
            cashback=cashback, network=network, blockchain_status=blockchain_status
        )

    async def claim_cashback_for_user(self, cashback_id: int, user_id: int) -> ClaimResult:
        """
        Pay out a user's claimable CashbackManager balance.

        The network signer calls claimCashbackFor(user); the transaction is
        tracked like any settlement transfer.

        Args:
            cashback_id: COMPLETED cashback the claim is made for
            user_id: Requesting user, must own the cashback

        Returns:
            ClaimResult with the claimed amount in token units

        Raises:
            CashbackNotFoundError: Unknown ID
            CashbackOwnershipError: Cashback belongs to another user
            CashbackNotClaimableError: Not COMPLETED, or nothing claimable on chain
            InvalidAddressError: No valid wallet for the user
            UnsupportedNetworkError: No stored network or CASHBACK_MANAGER
            SettlementError: Send failures
        """
        async with self.uow.transaction() as tx:
            cashback = await self._get_cashback(tx, cashback_id)
            if cashback.user_id != user_id:
                raise CashbackOwnershipError(cashback_id, user_id)
            if cashback.status != CashbackStatus.COMPLETED:
                raise CashbackNotClaimableError(cashback_id, f"status is {cashback.status}")

            user = await tx.users.get_by_id(user_id)
            wallet = cashback.wallet_address or (user.wallet_address if user else None)
            is_valid, error = validate_wallet_address(wallet)
            if not is_valid:
                raise InvalidAddressError(wallet, error or "missing wallet address")

            network = await self._transfer_network(tx, cashback)
            network_row = await tx.blockchain_networks.find_by_type(network)
            if network_row is None or not network_row.is_active:
                raise UnsupportedNetworkError(network, "no active stored network")
            manager = await tx.smart_contracts.find_active_by_type(
                ContractType.CASHBACK_MANAGER.value, network_row.id
            )
            if manager is None:
                raise UnsupportedNetworkError(network, "no active CASHBACK_MANAGER contract")

            handle = self.client.registry.signer(network)
            target = SettlementTarget(
                wallet_address=wallet.strip(),
                network=network,
                network_id=network_row.id,
                handle=handle,
                manager_id=manager.id,
                manager_address=manager.address,
            )

        claimable = await self.gateway.get_claimable_balance(
            target.manager_address, target.wallet_address, handle
        )
        if claimable <= 0:
            raise CashbackNotClaimableError(cashback_id, "nothing claimable on chain")

        logger.info(
            f"Claiming cashback for user {user_id} ({mask_address(target.wallet_address)}) "
            f"on {network}, cashback {cashback_id}"
        )

        signed: SignedSubmission | None = None

        async def record_intent(submission: SignedSubmission) -> None:
            nonlocal signed
            async with self.uow.transaction() as tx:
                await self.core.write_intent(tx, submission, target)
            signed = submission

        try:
            confirmed = await self.gateway.claim_cashback_for(
                target.manager_address, target.wallet_address, handle, on_signed=record_intent
            )
        except Exception as e:
            reverted = isinstance(e, (TransactionRevertedError, ContractInteractionError))
            if reverted and signed is not None:
                await self._record_claim_failure(signed.tx_hash, e)
            raise

        try:
            async with self.uow.transaction() as tx:
                await self.core.write_confirmation(tx, confirmed)
        except SQLAlchemyError:
            logger.exception(
                f"Claim {mask_tx_hash(confirmed.tx_hash)} confirmed but not recorded, "
                f"monitor_transaction can close it"
            )
            raise

        amount = from_base_units(claimable, CASHBACK_TOKEN_DECIMALS)
        logger.success(
            f"Cashback claimed for user {user_id}: {amount} on {network}, "
            f"tx {confirmed.tx_hash}, block {confirmed.block_number}"
        )
        return ClaimResult(
            cashback_id=cashback_id,
            tx_hash=confirmed.tx_hash,
            block_number=confirmed.block_number,
            network=network,
            wallet_address=target.wallet_address,
            amount=amount,
            gas_fee=confirmed.gas_fee,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_cashback(tx: Repositories, cashback_id: int) -> Cashback:
        cashback = await tx.cashbacks.get_by_id(cashback_id)
        if cashback is None:
            raise CashbackNotFoundError(cashback_id)
        return cashback

    async def _transfer_network(self, tx: Repositories, cashback: Cashback) -> str:
        """Network of the tracked transfer, else the one settlement would pick."""
        if cashback.tx_hash:
            record = await tx.blockchain_transactions.find_by_hash(cashback.tx_hash)
            if record is not None:
                network_row = await tx.blockchain_networks.get_by_id(record.network_id)
                if network_row is not None:
                    return network_row.type.upper()

        user = await tx.users.get_by_id(cashback.user_id)
        return (
            cashback.network_identifier
            or (user.preferred_network if user else None)
            or self.settings.default_network
        ).upper()

    async def _record_claim_failure(self, tx_hash: str, error: Exception) -> None:
        reason = f"{type(error).__name__}: {error}"
        logger.error(f"Claim {mask_tx_hash(tx_hash)} failed: {reason}")
        try:
            async with self.uow.transaction() as tx:
                await tx.blockchain_transactions.mark_failed(tx_hash, reason)
        except SQLAlchemyError:
            logger.exception(f"Could not record failure of claim {mask_tx_hash(tx_hash)}")
