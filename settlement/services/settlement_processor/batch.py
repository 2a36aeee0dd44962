"""
Settlement Processor - Batch Module.

Module: batch.py
Sweeps over PENDING, FAILED and expired cashback records.
"""

import asyncio
from collections import defaultdict

from loguru import logger

from settlement.models.cashback import Cashback
from settlement.models.enums import CashbackStatus
from settlement.repositories.unit_of_work import Repositories
from settlement.utils.datetime_utils import utc_now
from settlement.utils.exceptions import is_validation_error

from .core import SettlementCore


class SettlementBatchProcessor:
    """Batch sweeps built on SettlementCore."""

    def __init__(self, core: SettlementCore) -> None:
        self.core = core
        self.uow = core.uow
        self.settings = core.settings

    async def process_pending_cashback(
        self,
        batch_size: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> dict:
        """
        Settle eligible PENDING cashbacks.

        Records are grouped by network: groups run concurrently, records
        within a group one after another.

        Returns:
            Dict with processed, successful, failed, skipped counts
        """
        batch_size = self.settings.cashback_batch_size if batch_size is None else batch_size
        async with self.uow.transaction() as tx:
            records = await tx.cashbacks.find_pending_eligible(batch_size, now=utc_now())
            groups = await self._group_by_network(tx, records)

        if not records:
            logger.debug("No pending cashback to process")
            return {"processed": 0, "successful": 0, "failed": 0, "skipped": 0}

        logger.info(
            f"Processing {len(records)} pending cashback across {len(groups)} network(s)"
        )
        stats = await self._run_groups(groups, max_retries=None, stop_event=stop_event)
        logger.info(
            f"Pending cashback sweep done: {stats['successful']} successful, "
            f"{stats['failed']} failed, {stats['skipped']} skipped"
        )
        return stats

    async def retry_failed_cashback(
        self,
        max_retries: int | None = None,
        batch_size: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> dict:
        """
        Retry FAILED cashbacks below the retry bound whose backoff elapsed.

        Returns:
            Dict with processed, successful, failed, skipped counts
        """
        max_retries = self.settings.cashback_max_retries if max_retries is None else max_retries
        batch_size = self.settings.cashback_batch_size if batch_size is None else batch_size

        async with self.uow.transaction() as tx:
            records = await tx.cashbacks.find_failed_for_retry(max_retries, batch_size, now=utc_now())
            groups = await self._group_by_network(tx, records)

        if not records:
            logger.debug("No failed cashback due for retry")
            return {"processed": 0, "successful": 0, "failed": 0, "skipped": 0}

        logger.info(f"Retrying {len(records)} failed cashback (max retries: {max_retries})")
        stats = await self._run_groups(groups, max_retries=max_retries, stop_event=stop_event)
        logger.info(
            f"Cashback retry sweep done: {stats['successful']} successful, "
            f"{stats['failed']} failed, {stats['skipped']} skipped"
        )
        return stats

    async def cancel_expired_cashback(self, batch_size: int | None = None) -> int:
        """
        Cancel PENDING cashbacks whose expires_at has passed.

        Returns:
            Number of records cancelled
        """
        batch_size = self.settings.cashback_batch_size if batch_size is None else batch_size
        now = utc_now()
        async with self.uow.transaction() as tx:
            expired_ids = [c.id for c in await tx.cashbacks.find_expired_pending(batch_size, now=now)]

        cancelled = 0
        for cashback_id in expired_ids:
            async with self.uow.transaction() as tx:
                if await tx.cashbacks.transition(
                    cashback_id, CashbackStatus.CANCELLED, [CashbackStatus.PENDING]
                ):
                    cancelled += 1

        if cancelled:
            logger.info(f"Cancelled {cancelled} expired cashback")
        return cancelled

    async def _group_by_network(
        self, tx: Repositories, records: list[Cashback]
    ) -> dict[str, list[int]]:
        groups: dict[str, list[int]] = defaultdict(list)
        preferred: dict[int, str | None] = {}
        for cashback in records:
            network = cashback.network_identifier
            if not network:
                if cashback.user_id not in preferred:
                    user = await tx.users.get_by_id(cashback.user_id)
                    preferred[cashback.user_id] = user.preferred_network if user else None
                network = preferred[cashback.user_id] or self.settings.default_network
            groups[network.upper()].append(cashback.id)
        return groups

    async def _run_groups(
        self,
        groups: dict[str, list[int]],
        max_retries: int | None,
        stop_event: asyncio.Event | None,
    ) -> dict:
        stats = {"processed": 0, "successful": 0, "failed": 0, "skipped": 0}

        async def run_group(network: str, cashback_ids: list[int]) -> None:
            for cashback_id in cashback_ids:
                if stop_event is not None and stop_event.is_set():
                    logger.info(f"{network}: stop requested, leaving remaining records")
                    return
                await self._settle_one(cashback_id, max_retries, stats)

        await asyncio.gather(*(run_group(network, ids) for network, ids in groups.items()))
        return stats

    async def _settle_one(self, cashback_id: int, max_retries: int | None, stats: dict) -> None:
        stats["processed"] += 1
        try:
            result = await self.core.process_cashback(cashback_id, max_retries=max_retries)
        except Exception as e:
            stats["failed"] += 1
            if is_validation_error(e):
                logger.warning(f"Cashback {cashback_id} not settled: {e}")
            else:
                logger.error(f"Error processing cashback {cashback_id}: {e}")
            return

        if result is None:
            stats["skipped"] += 1
        else:
            stats["successful"] += 1
