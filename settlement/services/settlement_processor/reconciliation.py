"""
Settlement Processor - Reconciliation Module.

Module: reconciliation.py
Closes tracked transactions from chain state and recovers PROCESSING
records left behind by a crash or a confirmation timeout.
"""

from datetime import timedelta

from loguru import logger

from settlement.models.enums import TransactionStatus
from settlement.utils.datetime_utils import utc_now
from settlement.utils.exceptions import TransactionNotTrackedError
from settlement.utils.security import mask_tx_hash

from .core import SettlementCore
from .types import MonitorOutcome


class SettlementReconciler:
    """Chain-driven reconciliation of in-flight settlements."""

    def __init__(self, core: SettlementCore) -> None:
        self.core = core
        self.uow = core.uow
        self.client = core.client
        self.settings = core.settings

    async def monitor_transaction(self, tx_hash: str) -> MonitorOutcome:
        """
        Check a tracked transaction on chain and close it if possible.

        Args:
            tx_hash: Transaction hash

        Returns:
            MonitorOutcome

        Raises:
            TransactionNotTrackedError: No local BlockchainTransaction
        """
        tx_hash = tx_hash.lower()
        async with self.uow.transaction() as tx:
            record = await tx.blockchain_transactions.find_by_hash(tx_hash)
            if record is None:
                raise TransactionNotTrackedError(tx_hash)
            network = await tx.blockchain_networks.get_by_id(record.network_id)
            network_name = network.type
            nonce = record.nonce
            from_address = record.from_address
            status = record.status

        receipt = await self.client.get_receipt(tx_hash, network_name)
        if receipt is not None:
            if receipt.succeeded:
                await self.core.complete_from_receipt(receipt)
                return MonitorOutcome.CONFIRMED
            await self.core.fail_transaction(
                tx_hash,
                f"Transaction reverted in block {receipt.block_number}",
                block_number=receipt.block_number,
                gas_used=receipt.gas_used,
            )
            return MonitorOutcome.FAILED

        if status == TransactionStatus.FAILED:
            return MonitorOutcome.FAILED

        if await self.client.is_known_to_node(tx_hash, network_name):
            logger.debug(f"{network_name}: {mask_tx_hash(tx_hash)} still pending")
            return MonitorOutcome.PENDING

        if nonce is not None:
            confirmed_nonce = await self.client.get_confirmed_nonce(from_address, network_name)
            if confirmed_nonce > nonce:
                logger.warning(
                    f"{network_name}: {mask_tx_hash(tx_hash)} dropped, "
                    f"nonce {nonce} already used (confirmed nonce {confirmed_nonce})"
                )
                await self.core.fail_transaction(
                    tx_hash, f"Transaction dropped, nonce {nonce} replaced"
                )
                return MonitorOutcome.DROPPED

        return MonitorOutcome.PENDING

    async def reconcile_processing_cashback(
        self,
        older_than_minutes: int | None = None,
        batch_size: int | None = None,
    ) -> dict:
        """
        Recover PROCESSING cashbacks older than the threshold.

        Records with a tx_hash are monitored on chain; records without one
        never reached broadcast and are marked FAILED.

        Returns:
            Dict with checked, completed, failed, pending, errors counts
        """
        if older_than_minutes is None:
            older_than_minutes = self.settings.stuck_processing_minutes
        batch_size = self.settings.cashback_batch_size if batch_size is None else batch_size
        threshold = utc_now() - timedelta(minutes=older_than_minutes)

        async with self.uow.transaction() as tx:
            stuck = [
                (cashback.id, cashback.tx_hash)
                for cashback in await tx.cashbacks.find_stuck_processing(threshold, batch_size)
            ]

        stats = {"checked": 0, "completed": 0, "failed": 0, "pending": 0, "errors": 0}
        if not stuck:
            return stats

        logger.info(f"Reconciling {len(stuck)} cashback stuck in processing")
        for cashback_id, tx_hash in stuck:
            stats["checked"] += 1
            try:
                if tx_hash is None:
                    async with self.uow.transaction() as tx:
                        failed = await tx.cashbacks.mark_failed(
                            cashback_id,
                            "Interrupted before broadcast",
                            self.settings.retry_base_delay_seconds,
                        )
                    stats["failed" if failed else "pending"] += 1
                    continue

                outcome = await self.monitor_transaction(tx_hash)
            except TransactionNotTrackedError as e:
                stats["errors"] += 1
                logger.error(f"Cashback {cashback_id}: {e}")
                continue
            except Exception as e:
                stats["errors"] += 1
                logger.error(f"Error reconciling cashback {cashback_id}: {e}")
                continue

            if outcome == MonitorOutcome.CONFIRMED:
                stats["completed"] += 1
            elif outcome == MonitorOutcome.PENDING:
                stats["pending"] += 1
            else:
                stats["failed"] += 1

        logger.info(
            f"Reconciliation done: {stats['completed']} completed, {stats['failed']} failed, "
            f"{stats['pending']} pending, {stats['errors']} errors"
        )
        return stats
