"""
Unit of work.

Bundles the settlement repositories over one session and scopes them to a
single database transaction.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.repositories.blockchain_event_repository import BlockchainEventRepository
from settlement.repositories.blockchain_network_repository import BlockchainNetworkRepository
from settlement.repositories.blockchain_transaction_repository import BlockchainTransactionRepository
from settlement.repositories.cashback_repository import CashbackRepository
from settlement.repositories.smart_contract_repository import SmartContractRepository
from settlement.repositories.user_repository import UserRepository

T = TypeVar("T")


class Repositories:
    """Repository bundle sharing one session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.cashbacks = CashbackRepository(session)
        self.users = UserRepository(session)
        self.blockchain_networks = BlockchainNetworkRepository(session)
        self.smart_contracts = SmartContractRepository(session)
        self.blockchain_transactions = BlockchainTransactionRepository(session)
        self.blockchain_events = BlockchainEventRepository(session)


class UnitOfWork:
    """
    Transaction scope factory.

    Example:
        async with uow.transaction() as tx:
            cashback = await tx.cashbacks.get_by_id(1)
            await tx.cashbacks.transition(...)
        # committed here, rolled back if the block raised
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Repositories]:
        """Open a session and a transaction; commit on success, roll back on error."""
        async with self._session_factory() as session:
            async with session.begin():
                yield Repositories(session)

    async def execute_in_transaction(
        self, operation: Callable[[Repositories], Awaitable[T]]
    ) -> T:
        """
        Run ``operation`` inside one transaction.

        Args:
            operation: Coroutine function receiving the repository bundle

        Returns:
            Whatever operation returns
        """
        async with self.transaction() as repos:
            return await operation(repos)
