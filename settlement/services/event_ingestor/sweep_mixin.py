"""
Event Ingestor Sweep Mixin.

Processes stored events that have not been handled yet.
"""

import asyncio

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from settlement.config.constants import MAX_FAILURE_REASON_LENGTH
from settlement.models.blockchain_event import BlockchainEvent


class SweepMixin:
    """Mixin providing the unprocessed-event sweep and queries."""

    async def sweep_pending(
        self,
        limit: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> dict:
        """
        Handle unprocessed events in id order, one transaction per event.

        A failing handler leaves its event unprocessed with
        processing_error set; the sweep moves on.

        Returns:
            Dict with processed and failed counts
        """
        async with self.uow.transaction() as tx:
            event_ids = [event.id for event in await tx.blockchain_events.find_unprocessed(limit)]

        stats = {"processed": 0, "failed": 0}
        for event_id in event_ids:
            if stop_event is not None and stop_event.is_set():
                logger.info("Event sweep stop requested")
                break

            try:
                async with self.uow.transaction() as tx:
                    event = await tx.blockchain_events.get_by_id(event_id)
                    if event is None or event.processed:
                        continue
                    await self.handlers.dispatch(tx, event)
                    await tx.blockchain_events.mark_processed(event_id)
                stats["processed"] += 1
            except Exception as e:
                stats["failed"] += 1
                logger.error(f"Error handling event {event_id}: {e}")
                await self._record_processing_error(event_id, f"{type(e).__name__}: {e}")

        if event_ids:
            logger.info(
                f"Event sweep done: {stats['processed']} processed, {stats['failed']} failed"
            )
        return stats

    async def _record_processing_error(self, event_id: int, error: str) -> None:
        try:
            async with self.uow.transaction() as tx:
                await tx.blockchain_events.record_error(event_id, error[:MAX_FAILURE_REASON_LENGTH])
        except SQLAlchemyError:
            logger.exception(f"Could not record processing error of event {event_id}")

    async def get_unprocessed_event_count(self) -> int:
        async with self.uow.transaction() as tx:
            return await tx.blockchain_events.count_unprocessed()

    async def get_contract_event_history(
        self, contract_id: int, limit: int = 100
    ) -> list[BlockchainEvent]:
        async with self.uow.transaction() as tx:
            return await tx.blockchain_events.find_by_contract(contract_id, limit)
