"""Smart contract repository."""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.models.smart_contract import SmartContract
from settlement.repositories.base import BaseRepository


class SmartContractRepository(BaseRepository[SmartContract]):
    """Smart contract repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize smart contract repository."""
        super().__init__(SmartContract, session)

    async def find_active_by_type(
        self, contract_type: str, network_id: int
    ) -> SmartContract | None:
        """
        Get the most recently deployed active contract of a type on a network.

        Args:
            contract_type: CASHBACK_TOKEN, CASHBACK_MANAGER or CASHBACK_POOL
            network_id: BlockchainNetwork ID

        Returns:
            Contract or None
        """
        stmt = (
            select(SmartContract)
            .where(
                SmartContract.type == contract_type,
                SmartContract.network_id == network_id,
                SmartContract.is_active.is_(True),
            )
            .order_by(SmartContract.deployed_at.desc(), SmartContract.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_address(
        self, network_id: int, address: str
    ) -> SmartContract | None:
        stmt = select(SmartContract).where(
            SmartContract.network_id == network_id,
            func.lower(SmartContract.address) == address.lower(),
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_network(self, network_id: int) -> list[SmartContract]:
        stmt = (
            select(SmartContract)
            .where(
                SmartContract.network_id == network_id,
                SmartContract.is_active.is_(True),
            )
            .order_by(SmartContract.deployed_at.desc(), SmartContract.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def mark_verified(self, network_id: int, address: str) -> bool:
        """
        Flip the verified flag.

        Returns:
            True if a contract row was updated
        """
        stmt = (
            update(SmartContract)
            .where(
                SmartContract.network_id == network_id,
                func.lower(SmartContract.address) == address.lower(),
            )
            .values(verified=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0
