"""Blockchain event repository."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.blockchain_event import BlockchainEvent
from settlement.repositories.base import BaseRepository
from settlement.utils.datetime_utils import utc_now


class BlockchainEventRepository(BaseRepository[BlockchainEvent]):
    """Blockchain event repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize blockchain event repository."""
        super().__init__(BlockchainEvent, session)

    async def find_by_tx_and_log_index(
        self, transaction_hash: str, log_index: int
    ) -> BlockchainEvent | None:
        """
        Get event by its idempotency key.

        Args:
            transaction_hash: Transaction hash
            log_index: Log index within the transaction

        Returns:
            Event or None
        """
        stmt = select(BlockchainEvent).where(
            BlockchainEvent.transaction_hash == transaction_hash.lower(),
            BlockchainEvent.log_index == log_index,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_unprocessed(self, limit: int | None = None) -> list[BlockchainEvent]:
        stmt = (
            select(BlockchainEvent)
            .where(BlockchainEvent.processed.is_(False))
            .order_by(BlockchainEvent.id)
        )
        if limit:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_unprocessed(self) -> int:
        stmt = select(func.count(BlockchainEvent.id)).where(
            BlockchainEvent.processed.is_(False)
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def find_by_contract(
        self, contract_id: int, limit: int = 100
    ) -> list[BlockchainEvent]:
        stmt = (
            select(BlockchainEvent)
            .where(BlockchainEvent.contract_id == contract_id)
            .order_by(BlockchainEvent.block_number.desc(), BlockchainEvent.log_index.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_processed(self, event_id: int) -> BlockchainEvent | None:
        return await self.update(
            event_id,
            processed=True,
            processed_at=utc_now(),
            processing_error=None,
        )

    async def record_error(self, event_id: int, error: str) -> BlockchainEvent | None:
        return await self.update(event_id, processing_error=error)
