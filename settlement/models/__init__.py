"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from settlement.models.base import Base
from settlement.models.blockchain_event import BlockchainEvent
from settlement.models.blockchain_network import BlockchainNetwork
from settlement.models.blockchain_transaction import BlockchainTransaction
from settlement.models.cashback import Cashback
from settlement.models.enums import CashbackStatus, ContractType, TransactionStatus
from settlement.models.smart_contract import SmartContract
from settlement.models.user import User

__all__ = [
    "Base",
    "BlockchainEvent",
    "BlockchainNetwork",
    "BlockchainTransaction",
    "Cashback",
    "CashbackStatus",
    "ContractType",
    "SmartContract",
    "TransactionStatus",
    "User",
]
