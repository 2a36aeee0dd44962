"""
BlockchainNetwork model.

A configured chain endpoint. Seeded from configuration, never mutated at runtime.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base


class BlockchainNetwork(Base):
    """Blockchain network entity."""

    __tablename__ = "blockchain_networks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False, unique=True, comment="Network name, e.g. BSC_TESTNET"
    )
    chain_id: Mapped[int] = mapped_column(Integer, nullable=False)
    rpc_url: Mapped[str] = mapped_column(String(512), nullable=False)
    native_symbol: Mapped[str] = mapped_column(String(16), nullable=False)
    is_testnet: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<BlockchainNetwork(id={self.id}, type={self.type}, chain_id={self.chain_id})>"
