"""
User model.

Owned by the user domain; the settlement service only reads the wallet
address and preferred network.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement.models.base import Base
from settlement.models.types import AddressType


class User(Base):
    """User entity (settlement view)."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    wallet_address: Mapped[str | None] = mapped_column(AddressType, nullable=True, index=True)
    preferred_network: Mapped[str | None] = mapped_column(
        String(32), nullable=True, comment="Network type, e.g. BSC_TESTNET"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<User(id={self.id}, network={self.preferred_network})>"
