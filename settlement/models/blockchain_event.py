"""
BlockchainEvent model.

An ingested log entry. (transaction_hash, log_index) is the idempotency key.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.types import TxHashType


class BlockchainEvent(Base):
    """Blockchain event entity."""

    __tablename__ = "blockchain_events"
    __table_args__ = (
        UniqueConstraint("transaction_hash", "log_index", name="uq_blockchain_events_tx_log"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    network_id: Mapped[int] = mapped_column(
        ForeignKey("blockchain_networks.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    contract_id: Mapped[int | None] = mapped_column(
        ForeignKey("smart_contracts.id", ondelete="SET NULL"), nullable=True, index=True
    )

    event_name: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    transaction_hash: Mapped[str] = mapped_column(TxHashType, nullable=False, index=True)
    log_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    block_number: Mapped[int] = mapped_column(Integer, nullable=False)
    block_hash: Mapped[str | None] = mapped_column(TxHashType, nullable=True)
    event_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    processing_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BlockchainEvent(id={self.id}, event={self.event_name}, "
            f"tx={self.transaction_hash[:16]}..., log_index={self.log_index})>"
        )
