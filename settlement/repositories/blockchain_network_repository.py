"""Blockchain network repository."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.blockchain_network import BlockchainNetwork
from settlement.repositories.base import BaseRepository


class BlockchainNetworkRepository(BaseRepository[BlockchainNetwork]):
    """Blockchain network repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize blockchain network repository."""
        super().__init__(BlockchainNetwork, session)

    async def find_by_type(self, network_type: str) -> BlockchainNetwork | None:
        """
        Get network by type.

        Args:
            network_type: Network name, e.g. BSC_TESTNET

        Returns:
            Network or None if not seeded
        """
        stmt = select(BlockchainNetwork).where(
            BlockchainNetwork.type == network_type.upper()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_active(self) -> list[BlockchainNetwork]:
        stmt = (
            select(BlockchainNetwork)
            .where(BlockchainNetwork.is_active.is_(True))
            .order_by(BlockchainNetwork.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
