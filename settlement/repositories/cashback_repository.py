"""
Cashback repository.

State transitions are conditional UPDATEs so concurrent sweeps cannot
claim the same record twice.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.config.constants import MAX_FAILURE_REASON_LENGTH
from settlement.models.cashback import Cashback
from settlement.models.enums import CashbackStatus, can_transition
from settlement.repositories.base import BaseRepository
from settlement.utils.datetime_utils import utc_now
from settlement.utils.exceptions import InvalidStateTransitionError


class CashbackRepository(BaseRepository[Cashback]):
    """Cashback repository with settlement-specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize cashback repository."""
        super().__init__(Cashback, session)

    async def find_pending_eligible(
        self, limit: int, now: datetime | None = None
    ) -> list[Cashback]:
        """
        Get PENDING cashbacks that are eligible and not expired.

        Args:
            limit: Max number of records
            now: Reference time (defaults to current UTC)

        Returns:
            Records ordered by creation (oldest first)
        """
        now = now or utc_now()
        stmt = (
            select(Cashback)
            .where(
                Cashback.status == CashbackStatus.PENDING.value,
                or_(Cashback.eligible_at.is_(None), Cashback.eligible_at <= now),
                or_(Cashback.expires_at.is_(None), Cashback.expires_at > now),
            )
            .order_by(Cashback.created_at, Cashback.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_failed_for_retry(
        self, max_retries: int, limit: int, now: datetime | None = None
    ) -> list[Cashback]:
        """
        Get FAILED cashbacks below the retry bound whose backoff has elapsed.

        Args:
            max_retries: Records with retry_count >= max_retries are excluded
            limit: Max number of records
            now: Reference time

        Returns:
            Records ordered by creation
        """
        now = now or utc_now()
        stmt = (
            select(Cashback)
            .where(
                Cashback.status == CashbackStatus.FAILED.value,
                Cashback.retry_count < max_retries,
                or_(Cashback.next_retry_at.is_(None), Cashback.next_retry_at <= now),
            )
            .order_by(Cashback.created_at, Cashback.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_by_tx_hash(self, tx_hash: str) -> Cashback | None:
        stmt = select(Cashback).where(Cashback.tx_hash == tx_hash.lower())
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_expired_pending(
        self, limit: int, now: datetime | None = None
    ) -> list[Cashback]:
        """Get PENDING cashbacks whose expires_at has passed."""
        now = now or utc_now()
        stmt = (
            select(Cashback)
            .where(
                Cashback.status == CashbackStatus.PENDING.value,
                Cashback.expires_at.is_not(None),
                Cashback.expires_at <= now,
            )
            .order_by(Cashback.expires_at, Cashback.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_stuck_processing(
        self, older_than: datetime, limit: int
    ) -> list[Cashback]:
        """
        Get PROCESSING cashbacks claimed before ``older_than``.

        These are candidates for reconciliation after a crash between
        broadcast and the completion write.
        """
        stmt = (
            select(Cashback)
            .where(
                Cashback.status == CashbackStatus.PROCESSING.value,
                Cashback.processed_at <= older_than,
            )
            .order_by(Cashback.processed_at, Cashback.id)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def transition(
        self,
        cashback_id: int,
        target: CashbackStatus,
        from_statuses: Iterable[CashbackStatus],
        max_retry_count: int | None = None,
        **values: Any,
    ) -> bool:
        """
        Move a cashback to ``target`` if it is currently in ``from_statuses``.

        Args:
            cashback_id: Cashback ID
            target: Target status
            from_statuses: Statuses the record may currently be in
            max_retry_count: Additionally require retry_count < this value
            **values: Extra columns to set

        Returns:
            True if the row was updated, False if another worker got there first

        Raises:
            InvalidStateTransitionError: If any from -> target edge is not allowed
        """
        sources = [CashbackStatus(status) for status in from_statuses]
        for source in sources:
            if not can_transition(source, target):
                raise InvalidStateTransitionError(cashback_id, source.value, target.value)

        stmt = (
            update(Cashback)
            .where(
                Cashback.id == cashback_id,
                Cashback.status.in_([source.value for source in sources]),
            )
            .values(status=target.value, updated_at=utc_now(), **values)
            .execution_options(synchronize_session=False)
        )
        if max_retry_count is not None:
            stmt = stmt.where(Cashback.retry_count < max_retry_count)

        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def attach_tx_hash(self, cashback_id: int, tx_hash: str) -> bool:
        """Record the hash of a signed transfer on a PROCESSING cashback."""
        stmt = (
            update(Cashback)
            .where(
                Cashback.id == cashback_id,
                Cashback.status == CashbackStatus.PROCESSING.value,
            )
            .values(tx_hash=tx_hash.lower(), updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_failed(
        self,
        cashback_id: int,
        reason: str,
        retry_base_delay_seconds: int,
        now: datetime | None = None,
    ) -> Cashback | None:
        """
        Move a PROCESSING cashback to FAILED and bump retry_count.

        Next retry is scheduled with exponential backoff:
        base, 2*base, 4*base, ...

        Returns:
            Updated cashback, or None if it was not PROCESSING
        """
        now = now or utc_now()
        cashback = await self.get_for_update(cashback_id)
        if cashback is None or cashback.status != CashbackStatus.PROCESSING:
            logger.warning(
                f"Cashback {cashback_id} not in processing state, "
                f"failure not recorded: {reason}"
            )
            return None

        retry_count = cashback.retry_count + 1
        cashback.status = CashbackStatus.FAILED.value
        cashback.failure_reason = reason[:MAX_FAILURE_REASON_LENGTH]
        cashback.retry_count = retry_count
        cashback.failed_at = now
        cashback.last_retry_at = now
        cashback.next_retry_at = now + timedelta(
            seconds=retry_base_delay_seconds * (2 ** (retry_count - 1))
        )

        await self.session.flush()
        return cashback

    async def get_status_stats(self) -> dict[str, dict[str, Any]]:
        """
        Count and sum cashbacks per status.

        Returns:
            {status: {"count": int, "total_amount": Decimal}} for every status
        """
        stmt = select(
            Cashback.status,
            func.count(Cashback.id),
            func.coalesce(func.sum(Cashback.amount), 0),
        ).group_by(Cashback.status)
        result = await self.session.execute(stmt)

        stats: dict[str, dict[str, Any]] = {
            status.value: {"count": 0, "total_amount": Decimal("0")}
            for status in CashbackStatus
        }
        for status, count, total in result.all():
            stats[status] = {"count": count, "total_amount": Decimal(str(total))}
        return stats
