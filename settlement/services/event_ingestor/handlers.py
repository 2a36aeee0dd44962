"""
Event Ingestor Handlers.

Per-event-name processing of stored events. Handlers run inside the
sweep's transaction for that event.
"""

from collections.abc import Awaitable, Callable

from loguru import logger

from settlement.models.blockchain_event import BlockchainEvent
from settlement.models.enums import CashbackStatus
from settlement.repositories.unit_of_work import Repositories
from settlement.utils.datetime_utils import utc_now
from settlement.utils.security import mask_address, mask_tx_hash

Handler = Callable[[Repositories, BlockchainEvent], Awaitable[None]]


class EventHandlers:
    """Dispatch table from event name to handler."""

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {
            "CashbackAllocated": self.handle_cashback_allocated,
            "CashbackClaimed": self.handle_cashback_claimed,
            "TokensDeposited": self.handle_tokens_deposited,
            "TokensWithdrawn": self.handle_tokens_withdrawn,
        }

    def register(self, event_name: str, handler: Handler) -> None:
        """Add or replace the handler of an event name."""
        self._handlers[event_name] = handler

    async def dispatch(self, tx: Repositories, event: BlockchainEvent) -> None:
        handler = self._handlers.get(event.event_name)
        if handler is None:
            logger.debug(f"No handler for {event.event_name} (event {event.id}), skipping")
            return
        await handler(tx, event)

    async def handle_cashback_allocated(self, tx: Repositories, event: BlockchainEvent) -> None:
        """Confirm the allocation transaction and complete its cashback."""
        await self._confirm_transaction(tx, event)

        cashback = await tx.cashbacks.find_by_tx_hash(event.transaction_hash)
        if cashback is None:
            logger.warning(
                f"CashbackAllocated {mask_tx_hash(event.transaction_hash)} "
                f"matches no cashback record"
            )
            return
        if cashback.status not in (CashbackStatus.PROCESSING, CashbackStatus.FAILED):
            return

        completed = await tx.cashbacks.transition(
            cashback.id,
            CashbackStatus.COMPLETED,
            [CashbackStatus(cashback.status)],
            block_number=event.block_number,
            completed_at=utc_now(),
        )
        if completed:
            logger.success(
                f"Cashback {cashback.id} completed from CashbackAllocated event "
                f"(block {event.block_number})"
            )

    async def handle_cashback_claimed(self, tx: Repositories, event: BlockchainEvent) -> None:
        await self._confirm_transaction(tx, event)
        data = event.event_data or {}
        logger.info(
            f"Cashback claimed by {mask_address(data.get('user'))}: "
            f"{data.get('amount')} (block {event.block_number})"
        )

    async def handle_tokens_deposited(self, tx: Repositories, event: BlockchainEvent) -> None:
        data = event.event_data or {}
        logger.info(
            f"Pool deposit by {mask_address(data.get('user'))}: "
            f"{data.get('amount')} (block {event.block_number})"
        )

    async def handle_tokens_withdrawn(self, tx: Repositories, event: BlockchainEvent) -> None:
        data = event.event_data or {}
        logger.info(
            f"Pool withdrawal by {mask_address(data.get('user'))}: "
            f"{data.get('amount')} (fee {data.get('fee')}, block {event.block_number})"
        )

    @staticmethod
    async def _confirm_transaction(tx: Repositories, event: BlockchainEvent) -> None:
        transaction = await tx.blockchain_transactions.mark_confirmed(
            event.transaction_hash,
            block_number=event.block_number,
            block_hash=event.block_hash,
        )
        if transaction is None:
            logger.debug(f"{event.event_name}: {mask_tx_hash(event.transaction_hash)} not tracked")
