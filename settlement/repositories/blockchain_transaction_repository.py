"""Blockchain transaction repository."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.blockchain_transaction import BlockchainTransaction
from settlement.models.enums import TransactionStatus
from settlement.repositories.base import BaseRepository
from settlement.utils.datetime_utils import utc_now


class BlockchainTransactionRepository(BaseRepository[BlockchainTransaction]):
    """Blockchain transaction repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize blockchain transaction repository."""
        super().__init__(BlockchainTransaction, session)

    async def find_by_hash(self, tx_hash: str) -> BlockchainTransaction | None:
        """
        Get transaction by hash.

        Args:
            tx_hash: 0x-prefixed transaction hash (any case)

        Returns:
            Transaction or None
        """
        stmt = select(BlockchainTransaction).where(
            BlockchainTransaction.tx_hash == tx_hash.lower()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_contract(
        self, contract_id: int, limit: int = 100
    ) -> list[BlockchainTransaction]:
        stmt = (
            select(BlockchainTransaction)
            .where(BlockchainTransaction.contract_id == contract_id)
            .order_by(BlockchainTransaction.sent_at.desc(), BlockchainTransaction.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_pending(
        self, sent_before: datetime, limit: int = 100
    ) -> list[BlockchainTransaction]:
        stmt = (
            select(BlockchainTransaction)
            .where(
                BlockchainTransaction.status == TransactionStatus.PENDING.value,
                BlockchainTransaction.sent_at <= sent_before,
            )
            .order_by(BlockchainTransaction.sent_at)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_confirmed(
        self,
        tx_hash: str,
        block_number: int,
        block_hash: str | None = None,
        gas_used: int | None = None,
        gas_price: int | None = None,
        gas_fee: Decimal | None = None,
    ) -> BlockchainTransaction | None:
        """
        Mark transaction CONFIRMED with receipt data.

        Receipt fields already stored are kept when the caller has none
        (event-driven confirmation carries no gas data).
        """
        transaction = await self.find_by_hash(tx_hash)
        if transaction is None:
            return None

        transaction.status = TransactionStatus.CONFIRMED.value
        transaction.block_number = block_number
        transaction.block_hash = block_hash or transaction.block_hash
        if gas_used is not None:
            transaction.gas_used = gas_used
        if gas_price is not None:
            transaction.gas_price = str(gas_price)
        if gas_fee is not None:
            transaction.gas_fee = gas_fee
        transaction.confirmed_at = transaction.confirmed_at or utc_now()
        transaction.error = None

        await self.session.flush()
        return transaction

    async def mark_failed(
        self,
        tx_hash: str,
        error: str,
        block_number: int | None = None,
        gas_used: int | None = None,
    ) -> BlockchainTransaction | None:
        transaction = await self.find_by_hash(tx_hash)
        if transaction is None:
            return None
        if transaction.status == TransactionStatus.CONFIRMED:
            return transaction

        transaction.status = TransactionStatus.FAILED.value
        transaction.error = error
        if block_number is not None:
            transaction.block_number = block_number
        if gas_used is not None:
            transaction.gas_used = gas_used

        await self.session.flush()
        return transaction
