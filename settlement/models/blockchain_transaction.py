"""
BlockchainTransaction model.

Local mirror of a transaction the service submitted. The row is written
PENDING after signing and before broadcast, then closed by the synchronous
path or by reconciliation.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.enums import TransactionStatus
from settlement.models.types import AddressType, BigMoneyType, TxHashType, UInt256Type


class BlockchainTransaction(Base):
    """Blockchain transaction entity."""

    __tablename__ = "blockchain_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False, unique=True, index=True)
    network_id: Mapped[int] = mapped_column(
        ForeignKey("blockchain_networks.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    contract_id: Mapped[int | None] = mapped_column(
        ForeignKey("smart_contracts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    from_address: Mapped[str] = mapped_column(AddressType, nullable=False)
    to_address: Mapped[str | None] = mapped_column(
        AddressType, nullable=True, comment="NULL for contract creation"
    )
    value: Mapped[str] = mapped_column(
        UInt256Type, nullable=False, default="0", comment="Amount moved in base units (wei)"
    )
    nonce: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        index=True,
        comment="pending, confirmed, failed",
    )

    block_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    block_hash: Mapped[str | None] = mapped_column(TxHashType, nullable=True)
    gas_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    gas_price: Mapped[str | None] = mapped_column(UInt256Type, nullable=True, comment="Effective gas price in wei")
    gas_fee: Mapped[Decimal | None] = mapped_column(BigMoneyType, nullable=True, comment="Fee in native units")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BlockchainTransaction(tx_hash={self.tx_hash[:16]}..., "
            f"status={self.status}, block={self.block_number})>"
        )
