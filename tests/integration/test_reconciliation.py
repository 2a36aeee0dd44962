"""Integration tests for transaction monitoring and PROCESSING reconciliation."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from settlement.models.enums import CashbackStatus, TransactionStatus
from settlement.services.settlement_processor import MonitorOutcome
from settlement.utils.exceptions import ConfirmationTimeoutError, TransactionNotTrackedError
from tests.conftest import SIGNER_ADDRESS, USER_WALLET


async def get_transaction(uow, tx_hash):
    async with uow.transaction() as tx:
        return await tx.blockchain_transactions.find_by_hash(tx_hash)


@pytest.fixture
def timed_out_cashback(processor, fake_eth, network_ids, create_user, create_cashback, get_cashback):
    """Factory for a cashback whose transfer was broadcast but never confirmed."""

    async def factory():
        fake_eth.hold_receipts = True
        user = await create_user()
        cashback = await create_cashback(user.id)
        with pytest.raises(ConfirmationTimeoutError):
            await processor.process_cashback(cashback.id)
        fake_eth.hold_receipts = False
        return await get_cashback(cashback.id)

    return factory


@pytest.fixture
def track_transaction(uow, network_ids):
    """Factory storing a PENDING transaction row."""

    async def factory(tx_hash, nonce=0):
        async with uow.transaction() as tx:
            return await tx.blockchain_transactions.create(
                tx_hash=tx_hash,
                network_id=network_ids["BSC_TESTNET"],
                from_address=SIGNER_ADDRESS,
                to_address=USER_WALLET,
                value="1000",
                nonce=nonce,
                status=TransactionStatus.PENDING.value,
            )

    return factory


class TestMonitorTransaction:
    """Test monitor_transaction outcomes."""

    @pytest.mark.asyncio
    async def test_untracked_hash(self, processor, network_ids, sample_transaction_hash):
        with pytest.raises(TransactionNotTrackedError):
            await processor.monitor_transaction(sample_transaction_hash)

    @pytest.mark.asyncio
    async def test_still_in_mempool(self, processor, timed_out_cashback):
        cashback = await timed_out_cashback()

        assert await processor.monitor_transaction(cashback.tx_hash) == MonitorOutcome.PENDING

    @pytest.mark.asyncio
    async def test_confirmed_late_completes_failed_cashback(
        self, processor, uow, fake_eth, timed_out_cashback, get_cashback
    ):
        """FAILED -> COMPLETED once the timed-out transfer is mined."""
        cashback = await timed_out_cashback()
        assert cashback.status == CashbackStatus.FAILED
        fake_eth.mine(cashback.tx_hash)

        outcome = await processor.monitor_transaction(cashback.tx_hash.upper().replace("0X", "0x"))

        assert outcome == MonitorOutcome.CONFIRMED
        stored = await get_cashback(cashback.id)
        assert stored.status == CashbackStatus.COMPLETED
        assert stored.block_number == fake_eth.block
        transaction = await get_transaction(uow, cashback.tx_hash)
        assert transaction.status == TransactionStatus.CONFIRMED
        assert transaction.gas_fee == Decimal("0.000105")

    @pytest.mark.asyncio
    async def test_reverted_late(self, processor, uow, fake_eth, timed_out_cashback, get_cashback):
        cashback = await timed_out_cashback()
        fake_eth.mine(cashback.tx_hash, status=0)

        assert await processor.monitor_transaction(cashback.tx_hash) == MonitorOutcome.FAILED

        transaction = await get_transaction(uow, cashback.tx_hash)
        assert transaction.status == TransactionStatus.FAILED
        assert transaction.block_number == fake_eth.block
        assert (await get_cashback(cashback.id)).status == CashbackStatus.FAILED

    @pytest.mark.asyncio
    async def test_dropped_after_nonce_reuse(self, processor, uow, fake_eth, timed_out_cashback):
        cashback = await timed_out_cashback()
        fake_eth.drop(cashback.tx_hash)
        fake_eth.confirmed_nonce = 1

        assert await processor.monitor_transaction(cashback.tx_hash) == MonitorOutcome.DROPPED

        transaction = await get_transaction(uow, cashback.tx_hash)
        assert transaction.status == TransactionStatus.FAILED
        assert "dropped" in transaction.error

    @pytest.mark.asyncio
    async def test_unknown_to_node_with_unused_nonce_is_pending(
        self, processor, uow, fake_eth, timed_out_cashback
    ):
        """Not dropped while its nonce can still be mined."""
        cashback = await timed_out_cashback()
        fake_eth.drop(cashback.tx_hash)

        assert await processor.monitor_transaction(cashback.tx_hash) == MonitorOutcome.PENDING
        assert (await get_transaction(uow, cashback.tx_hash)).status == TransactionStatus.PENDING

    @pytest.mark.asyncio
    async def test_failed_record_stays_failed(self, processor, uow, fake_eth, timed_out_cashback):
        cashback = await timed_out_cashback()
        fake_eth.drop(cashback.tx_hash)
        fake_eth.confirmed_nonce = 1
        await processor.monitor_transaction(cashback.tx_hash)

        assert await processor.monitor_transaction(cashback.tx_hash) == MonitorOutcome.FAILED

    @pytest.mark.asyncio
    async def test_dropped_transfer_is_resent_on_retry(
        self, processor, fake_eth, timed_out_cashback, get_cashback
    ):
        """After a drop the next retry signs again."""
        cashback = await timed_out_cashback()
        fake_eth.drop(cashback.tx_hash)
        fake_eth.confirmed_nonce = 1
        fake_eth.pending_nonce = 1
        await processor.monitor_transaction(cashback.tx_hash)

        result = await processor.process_cashback(cashback.id, max_retries=3)

        assert result.tx_hash != cashback.tx_hash
        assert (await get_cashback(cashback.id)).status == CashbackStatus.COMPLETED
        assert len(fake_eth.sent) == 2


class TestReconcileProcessingCashback:
    """Test recovery of records stuck in PROCESSING."""

    @pytest.mark.asyncio
    async def test_reconcile(
        self, processor, fake_eth, network_ids, create_user, create_cashback, get_cashback, track_transaction
    ):
        user = await create_user()
        stale = datetime.now(UTC) - timedelta(hours=1)
        mined_hash = "0x" + "11" * 32
        untracked_hash = "0x" + "22" * 32
        await track_transaction(mined_hash)
        fake_eth.mine(mined_hash)

        not_broadcast = await create_cashback(
            user.id, status=CashbackStatus.PROCESSING.value, processed_at=stale
        )
        mined = await create_cashback(
            user.id, payment_id=2, status=CashbackStatus.PROCESSING.value, processed_at=stale, tx_hash=mined_hash
        )
        untracked = await create_cashback(
            user.id, payment_id=3, status=CashbackStatus.PROCESSING.value, processed_at=stale, tx_hash=untracked_hash
        )
        recent = await create_cashback(
            user.id, payment_id=4, status=CashbackStatus.PROCESSING.value, processed_at=datetime.now(UTC)
        )

        stats = await processor.reconcile_processing_cashback(older_than_minutes=15)

        assert stats == {"checked": 3, "completed": 1, "failed": 1, "pending": 0, "errors": 1}

        interrupted = await get_cashback(not_broadcast.id)
        assert interrupted.status == CashbackStatus.FAILED
        assert interrupted.failure_reason == "Interrupted before broadcast"
        assert interrupted.retry_count == 1
        assert (await get_cashback(mined.id)).status == CashbackStatus.COMPLETED
        assert (await get_cashback(untracked.id)).status == CashbackStatus.PROCESSING
        assert (await get_cashback(recent.id)).status == CashbackStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_reverted_processing_record_failed(
        self, processor, fake_eth, network_ids, create_user, create_cashback, get_cashback, track_transaction
    ):
        user = await create_user()
        tx_hash = "0x" + "33" * 32
        await track_transaction(tx_hash)
        fake_eth.mine(tx_hash, status=0)
        cashback = await create_cashback(
            user.id,
            status=CashbackStatus.PROCESSING.value,
            processed_at=datetime.now(UTC) - timedelta(hours=1),
            tx_hash=tx_hash,
        )

        stats = await processor.reconcile_processing_cashback()

        assert stats["failed"] == 1
        stored = await get_cashback(cashback.id)
        assert stored.status == CashbackStatus.FAILED
        assert "reverted" in stored.failure_reason

    @pytest.mark.asyncio
    async def test_zero_minutes_takes_every_processing_record(
        self, processor, test_settings, network_ids, create_user, create_cashback, get_cashback
    ):
        test_settings.stuck_processing_minutes = 15
        user = await create_user()
        cashback = await create_cashback(
            user.id,
            status=CashbackStatus.PROCESSING.value,
            processed_at=datetime.now(UTC) - timedelta(minutes=1),
        )

        assert (await processor.reconcile_processing_cashback(older_than_minutes=15))["checked"] == 0

        stats = await processor.reconcile_processing_cashback(older_than_minutes=0)

        assert stats["checked"] == 1
        assert (await get_cashback(cashback.id)).status == CashbackStatus.FAILED

    @pytest.mark.asyncio
    async def test_nothing_to_reconcile(self, processor, network_ids):
        assert await processor.reconcile_processing_cashback() == {
            "checked": 0,
            "completed": 0,
            "failed": 0,
            "pending": 0,
            "errors": 0,
        }
