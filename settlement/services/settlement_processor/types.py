"""
Settlement Processor - Result Types.

Module: types.py
Value objects returned by the settlement operations.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum
from typing import Any

from settlement.models.cashback import Cashback
from settlement.services.blockchain.network_registry import NetworkHandle


class MonitorOutcome(StrEnum):
    """On-chain state of a tracked transaction after a monitor pass."""

    PENDING = "pending"  # No receipt yet, still known to the node
    CONFIRMED = "confirmed"  # Receipt with status 1
    FAILED = "failed"  # Receipt with status 0
    DROPPED = "dropped"  # Unknown to the node and its nonce was reused


@dataclass(frozen=True)
class SettlementTarget:
    """Where and how a cashback is paid out."""

    wallet_address: str
    network: str
    network_id: int
    handle: NetworkHandle
    manager_id: int | None = None
    manager_address: str | None = None

    @property
    def via_contract(self) -> bool:
        return self.manager_address is not None


@dataclass(frozen=True)
class SettlementResult:
    """A cashback closed as COMPLETED."""

    cashback_id: int
    tx_hash: str
    block_number: int
    network: str
    amount: Decimal
    gas_fee: Decimal | None = None
    via_contract: bool = False
    recovered: bool = False  # Completed from an earlier broadcast, no new send


@dataclass(frozen=True)
class CashbackChainStatus:
    """A stored cashback next to what the chain says about its transfer."""

    cashback: Cashback
    network: str
    blockchain_status: dict[str, Any] | None = None  # get_transaction_info, None without tx_hash


@dataclass(frozen=True)
class ClaimResult:
    """A confirmed CashbackManager.claimCashbackFor call."""

    cashback_id: int
    tx_hash: str
    block_number: int
    network: str
    wallet_address: str
    amount: Decimal
    gas_fee: Decimal | None = None
