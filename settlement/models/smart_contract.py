"""
SmartContract model.

A contract deployed by the service. Updated only to flip ``verified``.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.types import AddressType, TxHashType


class SmartContract(Base):
    """Deployed smart contract entity."""

    __tablename__ = "smart_contracts"
    __table_args__ = (
        UniqueConstraint("network_id", "address", name="uq_smart_contracts_network_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(
        String(32), nullable=False, index=True, comment="CASHBACK_TOKEN, CASHBACK_MANAGER, CASHBACK_POOL"
    )
    network_id: Mapped[int] = mapped_column(
        ForeignKey("blockchain_networks.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    address: Mapped[str] = mapped_column(AddressType, nullable=False, index=True)
    abi: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False)
    deployer_address: Mapped[str] = mapped_column(AddressType, nullable=False)
    deployment_tx_hash: Mapped[str] = mapped_column(TxHashType, nullable=False)
    version: Mapped[str] = mapped_column(String(16), nullable=False, default="1.0.0")
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deployed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<SmartContract(id={self.id}, type={self.type}, "
            f"network_id={self.network_id}, address={self.address})>"
        )
