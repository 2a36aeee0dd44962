"""
Repositories.

Data access layer over the settlement models.
"""

from settlement.repositories.blockchain_event_repository import BlockchainEventRepository
from settlement.repositories.blockchain_network_repository import BlockchainNetworkRepository
from settlement.repositories.blockchain_transaction_repository import BlockchainTransactionRepository
from settlement.repositories.cashback_repository import CashbackRepository
from settlement.repositories.smart_contract_repository import SmartContractRepository
from settlement.repositories.unit_of_work import Repositories, UnitOfWork
from settlement.repositories.user_repository import UserRepository

__all__ = [
    "BlockchainEventRepository",
    "BlockchainNetworkRepository",
    "BlockchainTransactionRepository",
    "CashbackRepository",
    "Repositories",
    "SmartContractRepository",
    "UnitOfWork",
    "UserRepository",
]
