"""Integration tests for repositories against an in-memory database."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from settlement.initialization.services import ensure_networks
from settlement.models.enums import CashbackStatus, TransactionStatus
from settlement.utils.exceptions import InvalidStateTransitionError
from tests.conftest import SIGNER_ADDRESS, USER_WALLET

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class TestCashbackTransition:
    """Test conditional status updates."""

    @pytest.mark.asyncio
    async def test_claim(self, uow, create_user, create_cashback, get_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id)

        async with uow.transaction() as tx:
            claimed = await tx.cashbacks.transition(
                cashback.id, CashbackStatus.PROCESSING, [CashbackStatus.PENDING], processed_at=NOW
            )
        async with uow.transaction() as tx:
            claimed_again = await tx.cashbacks.transition(
                cashback.id, CashbackStatus.PROCESSING, [CashbackStatus.PENDING]
            )

        assert claimed is True
        assert claimed_again is False
        assert (await get_cashback(cashback.id)).status == CashbackStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_disallowed_edge_raises(self, uow, create_user, create_cashback, get_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id)

        with pytest.raises(InvalidStateTransitionError):
            async with uow.transaction() as tx:
                await tx.cashbacks.transition(cashback.id, CashbackStatus.COMPLETED, [CashbackStatus.PENDING])
        with pytest.raises(InvalidStateTransitionError):
            async with uow.transaction() as tx:
                await tx.cashbacks.transition(cashback.id, CashbackStatus.PROCESSING, [CashbackStatus.COMPLETED])

        assert (await get_cashback(cashback.id)).status == CashbackStatus.PENDING

    @pytest.mark.asyncio
    async def test_retry_bound(self, uow, create_user, create_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id, status=CashbackStatus.FAILED.value, retry_count=3)

        async with uow.transaction() as tx:
            claimed = await tx.cashbacks.transition(
                cashback.id, CashbackStatus.PROCESSING, [CashbackStatus.FAILED], max_retry_count=3
            )

        assert claimed is False

    @pytest.mark.asyncio
    async def test_attach_tx_hash_requires_processing(self, uow, create_user, create_cashback, get_cashback):
        user = await create_user()
        pending = await create_cashback(user.id)
        processing = await create_cashback(user.id, payment_id=2, status=CashbackStatus.PROCESSING.value)
        tx_hash = "0x" + "AB" * 32

        async with uow.transaction() as tx:
            assert await tx.cashbacks.attach_tx_hash(pending.id, tx_hash) is False
            assert await tx.cashbacks.attach_tx_hash(processing.id, tx_hash) is True

        assert (await get_cashback(processing.id)).tx_hash == tx_hash.lower()
        assert (await get_cashback(pending.id)).tx_hash is None


class TestCashbackMarkFailed:
    """Test failure bookkeeping and backoff."""

    @pytest.mark.asyncio
    async def test_exponential_backoff(self, uow, create_user, create_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id, status=CashbackStatus.PROCESSING.value)

        async with uow.transaction() as tx:
            first = await tx.cashbacks.mark_failed(cashback.id, "rpc down", 60, now=NOW)
            first_delay = first.next_retry_at - first.failed_at
            first_count = first.retry_count
        async with uow.transaction() as tx:
            await tx.cashbacks.transition(cashback.id, CashbackStatus.PROCESSING, [CashbackStatus.FAILED])
        async with uow.transaction() as tx:
            second = await tx.cashbacks.mark_failed(cashback.id, "rpc down again", 60, now=NOW)
            second_delay = second.next_retry_at - second.failed_at
            second_count = second.retry_count

        assert first_count == 1
        assert first_delay == timedelta(seconds=60)
        assert second_count == 2
        assert second_delay == timedelta(seconds=120)

    @pytest.mark.asyncio
    async def test_only_processing_records(self, uow, create_user, create_cashback, get_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id)

        async with uow.transaction() as tx:
            assert await tx.cashbacks.mark_failed(cashback.id, "nope", 60) is None

        stored = await get_cashback(cashback.id)
        assert stored.status == CashbackStatus.PENDING
        assert stored.retry_count == 0

    @pytest.mark.asyncio
    async def test_reason_truncated(self, uow, create_user, create_cashback):
        user = await create_user()
        cashback = await create_cashback(user.id, status=CashbackStatus.PROCESSING.value)

        async with uow.transaction() as tx:
            failed = await tx.cashbacks.mark_failed(cashback.id, "x" * 5000, 0)

        assert len(failed.failure_reason) == 1000


class TestCashbackQueries:
    """Test sweep selection queries."""

    @pytest.mark.asyncio
    async def test_pending_eligible(self, uow, create_user, create_cashback):
        user = await create_user()
        ready = await create_cashback(user.id)
        await create_cashback(user.id, payment_id=2, eligible_at=NOW + timedelta(days=1))
        await create_cashback(user.id, payment_id=3, expires_at=NOW - timedelta(days=1))
        matured = await create_cashback(user.id, payment_id=4, eligible_at=NOW - timedelta(hours=1))

        async with uow.transaction() as tx:
            eligible = await tx.cashbacks.find_pending_eligible(10, now=NOW)
            expired = await tx.cashbacks.find_expired_pending(10, now=NOW)

        assert [cashback.id for cashback in eligible] == [ready.id, matured.id]
        assert [cashback.payment_id for cashback in expired] == [3]

    @pytest.mark.asyncio
    async def test_failed_for_retry(self, uow, create_user, create_cashback):
        user = await create_user()
        due = await create_cashback(
            user.id, status=CashbackStatus.FAILED.value, retry_count=1, next_retry_at=NOW - timedelta(minutes=1)
        )
        await create_cashback(
            user.id,
            payment_id=2,
            status=CashbackStatus.FAILED.value,
            retry_count=1,
            next_retry_at=NOW + timedelta(minutes=5),
        )
        await create_cashback(user.id, payment_id=3, status=CashbackStatus.FAILED.value, retry_count=3)

        async with uow.transaction() as tx:
            retryable = await tx.cashbacks.find_failed_for_retry(3, 10, now=NOW)

        assert [cashback.id for cashback in retryable] == [due.id]

    @pytest.mark.asyncio
    async def test_status_stats(self, uow, create_user, create_cashback):
        user = await create_user()
        await create_cashback(user.id, amount=Decimal("10"))
        await create_cashback(user.id, payment_id=2, amount=Decimal("2.5"))
        await create_cashback(user.id, payment_id=3, status=CashbackStatus.COMPLETED.value)

        async with uow.transaction() as tx:
            stats = await tx.cashbacks.get_status_stats()

        assert stats["pending"] == {"count": 2, "total_amount": Decimal("12.5")}
        assert stats["completed"]["count"] == 1
        assert stats["cancelled"] == {"count": 0, "total_amount": Decimal("0")}


class TestBlockchainTransactionRepository:
    """Test transaction close-out writes."""

    @pytest.fixture
    def tracked(self, uow, network_ids):
        async def factory(tx_hash):
            async with uow.transaction() as tx:
                return await tx.blockchain_transactions.create(
                    tx_hash=tx_hash,
                    network_id=network_ids["BSC_TESTNET"],
                    from_address=SIGNER_ADDRESS,
                    to_address=USER_WALLET,
                    value="1",
                    nonce=0,
                    status=TransactionStatus.PENDING.value,
                )

        return factory

    @pytest.mark.asyncio
    async def test_confirmed_is_not_failed_later(self, uow, tracked):
        tx_hash = "0x" + "77" * 32
        await tracked(tx_hash)

        async with uow.transaction() as tx:
            await tx.blockchain_transactions.mark_confirmed(
                tx_hash, block_number=9, gas_used=21000, gas_price=5, gas_fee=Decimal("0.000105")
            )
        async with uow.transaction() as tx:
            await tx.blockchain_transactions.mark_failed(tx_hash, "late drop")
        async with uow.transaction() as tx:
            stored = await tx.blockchain_transactions.find_by_hash(tx_hash.upper().replace("0X", "0x"))

        assert stored.status == TransactionStatus.CONFIRMED
        assert stored.error is None
        assert stored.gas_fee == Decimal("0.000105")

    @pytest.mark.asyncio
    async def test_event_confirmation_keeps_receipt_fields(self, uow, tracked):
        tx_hash = "0x" + "88" * 32
        await tracked(tx_hash)

        async with uow.transaction() as tx:
            await tx.blockchain_transactions.mark_confirmed(tx_hash, block_number=9, gas_used=21000)
        async with uow.transaction() as tx:
            await tx.blockchain_transactions.mark_confirmed(tx_hash, block_number=9)
            stored = await tx.blockchain_transactions.find_by_hash(tx_hash)
            gas_used = stored.gas_used

        assert gas_used == 21000

    @pytest.mark.asyncio
    async def test_unique_hash(self, uow, tracked):
        tx_hash = "0x" + "99" * 32
        await tracked(tx_hash)

        with pytest.raises(IntegrityError):
            await tracked(tx_hash)


class TestEnsureNetworks:
    @pytest.mark.asyncio
    async def test_idempotent(self, uow, registry, network_ids):
        again = await ensure_networks(uow, registry)

        assert again == network_ids
        async with uow.transaction() as tx:
            assert len(await tx.blockchain_networks.find_active()) == 2
