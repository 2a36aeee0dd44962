"""
Settlement Processor - Main Module.

Moves cashback records from PENDING to a confirmed on-chain transfer.

Module Structure:
- types.py: Result and outcome types
- core.py: Single-record settlement and close-out writes
- batch.py: Pending, retry and expiry sweeps
- reconciliation.py: Transaction monitoring and stuck-record recovery
- stats.py: Statistics and claimable balances
- verification.py: Per-record chain checks and user claims

Public Interface:
- SettlementProcessor: Facade over the components above
"""

import asyncio
from decimal import Decimal

from settlement.config.settings import Settings
from settlement.repositories.unit_of_work import UnitOfWork
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.contract_gateway import ContractGateway

from .batch import SettlementBatchProcessor
from .core import SettlementCore
from .reconciliation import SettlementReconciler
from .stats import SettlementStatsManager
from .types import (
    CashbackChainStatus,
    ClaimResult,
    MonitorOutcome,
    SettlementResult,
    SettlementTarget,
)
from .verification import SettlementVerifier


class SettlementProcessor:
    """Cashback settlement service."""

    def __init__(
        self,
        uow: UnitOfWork,
        client: BlockchainClient,
        gateway: ContractGateway,
        settings: Settings,
    ) -> None:
        self.core = SettlementCore(uow, client, gateway, settings)
        self.batch = SettlementBatchProcessor(self.core)
        self.reconciler = SettlementReconciler(self.core)
        self.stats_manager = SettlementStatsManager(self.core)
        self.verifier = SettlementVerifier(self.core)

    async def process_cashback(
        self, cashback_id: int, max_retries: int | None = None
    ) -> SettlementResult | None:
        """Settle one cashback."""
        return await self.core.process_cashback(cashback_id, max_retries=max_retries)

    async def process_pending_cashback(
        self, batch_size: int | None = None, stop_event: asyncio.Event | None = None
    ) -> dict:
        """Settle eligible PENDING cashbacks."""
        return await self.batch.process_pending_cashback(batch_size, stop_event)

    async def retry_failed_cashback(
        self,
        max_retries: int | None = None,
        batch_size: int | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> dict:
        """Retry FAILED cashbacks below the retry bound."""
        return await self.batch.retry_failed_cashback(max_retries, batch_size, stop_event)

    async def cancel_expired_cashback(self, batch_size: int | None = None) -> int:
        """Cancel expired PENDING cashbacks."""
        return await self.batch.cancel_expired_cashback(batch_size)

    async def monitor_transaction(self, tx_hash: str) -> MonitorOutcome:
        """Check a tracked transaction and close it from chain state."""
        return await self.reconciler.monitor_transaction(tx_hash)

    async def reconcile_processing_cashback(
        self, older_than_minutes: int | None = None, batch_size: int | None = None
    ) -> dict:
        """Recover PROCESSING cashbacks older than the threshold."""
        return await self.reconciler.reconcile_processing_cashback(older_than_minutes, batch_size)

    async def get_user_cashback_balance(self, user_id: int, network: str | None = None) -> Decimal:
        """Claimable cashback of a user."""
        return await self.stats_manager.get_user_cashback_balance(user_id, network)

    async def get_cashback_stats(self) -> dict:
        """Cashback statistics."""
        return await self.stats_manager.get_cashback_stats()

    async def verify_cashback_on_blockchain(self, cashback_id: int) -> bool:
        """Check that the cashback's transfer is mined and succeeded."""
        return await self.verifier.verify_cashback_on_blockchain(cashback_id)

    async def get_cashback_with_blockchain_status(self, cashback_id: int) -> CashbackChainStatus:
        """Stored cashback with its transfer's on-chain details."""
        return await self.verifier.get_cashback_with_blockchain_status(cashback_id)

    async def claim_cashback_for_user(self, cashback_id: int, user_id: int) -> ClaimResult:
        """Pay out a user's claimable CashbackManager balance."""
        return await self.verifier.claim_cashback_for_user(cashback_id, user_id)


__all__ = [
    "CashbackChainStatus",
    "ClaimResult",
    "MonitorOutcome",
    "SettlementProcessor",
    "SettlementResult",
    "SettlementTarget",
]
