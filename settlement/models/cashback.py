"""
Cashback model.

A reward owed to a user for a payment, settled on chain.
"""

from datetime import UTC, datetime
from decimal import ROUND_DOWN, Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.enums import CashbackStatus
from settlement.models.types import AddressType, MoneyType, PercentType, TxHashType


class Cashback(Base):
    """
    Cashback entity.

    Lifecycle:
    - created PENDING by the payment domain
    - PENDING -> PROCESSING when a worker claims it
    - PROCESSING -> COMPLETED once the transfer is confirmed
    - PROCESSING -> FAILED on any send error (retried while retry_count < max)
    - PENDING -> CANCELLED when expires_at passes

    tx_hash is written before broadcast, so a PROCESSING row with a
    tx_hash may already have moved funds.
    """

    __tablename__ = "cashbacks"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_cashback_amount_positive"),
        CheckConstraint("retry_count >= 0", name="check_cashback_retry_count_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    payment_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Snapshot taken by the payment domain; falls back to the user record
    wallet_address: Mapped[str | None] = mapped_column(AddressType, nullable=True)
    network_identifier: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    percentage: Mapped[Decimal] = mapped_column(PercentType, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=CashbackStatus.PENDING.value,
        index=True,
        comment="pending, processing, completed, failed, cancelled",
    )

    # Settlement result
    tx_hash: Mapped[str | None] = mapped_column(TxHashType, nullable=True, index=True)
    block_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Retry tracking
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_retry_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True, comment="Earliest time for the next retry"
    )

    # Eligibility window
    eligible_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)

    # Lifecycle timestamps
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Cashback(id={self.id}, user_id={self.user_id}, "
            f"amount={self.amount}, status={self.status})>"
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (CashbackStatus.COMPLETED, CashbackStatus.CANCELLED)

    @staticmethod
    def calculate_amount(payment_amount: Decimal, percentage: Decimal) -> Decimal:
        """
        Calculate cashback amount for a payment.

        Args:
            payment_amount: Payment amount
            percentage: Cashback percentage (5 means 5%)

        Returns:
            Amount rounded down to 8 decimal places
        """
        amount = Decimal(str(payment_amount)) * Decimal(str(percentage)) / Decimal(100)
        return amount.quantize(Decimal("0.00000001"), rounding=ROUND_DOWN)
