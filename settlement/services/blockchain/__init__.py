"""
Blockchain services.

Network registry, transaction sending and the multi-network client.
"""

from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.network_registry import NetworkHandle, NetworkRegistry, create_web3
from settlement.services.blockchain.transaction_sender import TransactionSender
from settlement.services.blockchain.types import (
    ConfirmedTransaction,
    GasEstimate,
    OnSigned,
    ReceiptSummary,
    SignedSubmission,
    TransferResult,
)

__all__ = [
    "BlockchainClient",
    "ConfirmedTransaction",
    "GasEstimate",
    "NetworkHandle",
    "NetworkRegistry",
    "OnSigned",
    "ReceiptSummary",
    "SignedSubmission",
    "TransactionSender",
    "TransferResult",
    "create_web3",
]
