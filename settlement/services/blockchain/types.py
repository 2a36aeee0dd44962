"""
Blockchain service result types.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from web3 import Web3

from settlement.config.constants import NATIVE_DECIMALS
from settlement.utils.validation import from_base_units


def to_hex_str(value: Any) -> str | None:
    """Normalize HexBytes/bytes/str hashes to lower-case 0x-prefixed hex."""
    if value is None:
        return None
    if isinstance(value, str):
        hex_value = value if value.startswith("0x") else f"0x{value}"
        return hex_value.lower()
    return Web3.to_hex(value).lower()


@dataclass(frozen=True)
class SignedSubmission:
    """A signed transaction about to be broadcast."""

    network: str
    tx_hash: str
    nonce: int
    from_address: str
    to_address: str | None
    value: int
    gas_limit: int
    gas_price: int


OnSigned = Callable[[SignedSubmission], Awaitable[None]]


@dataclass(frozen=True)
class ConfirmedTransaction:
    """A transaction with a successful receipt (one confirmation)."""

    network: str
    tx_hash: str
    nonce: int
    from_address: str
    to_address: str | None
    value: int
    block_number: int
    block_hash: str | None
    gas_used: int
    effective_gas_price: int
    contract_address: str | None = None

    @property
    def gas_fee_wei(self) -> int:
        return self.gas_used * self.effective_gas_price

    @property
    def gas_fee(self) -> Decimal:
        """gas_used * effective_gas_price in native units."""
        return from_base_units(self.gas_fee_wei, NATIVE_DECIMALS)


@dataclass(frozen=True)
class TransferResult:
    """Outcome of a confirmed cashback transfer."""

    transaction: ConfirmedTransaction
    amount: Decimal
    symbol: str
    token_address: str | None = None

    @property
    def tx_hash(self) -> str:
        return self.transaction.tx_hash

    @property
    def block_number(self) -> int:
        return self.transaction.block_number

    @property
    def gas_used(self) -> int:
        return self.transaction.gas_used

    @property
    def gas_fee(self) -> Decimal:
        return self.transaction.gas_fee


@dataclass(frozen=True)
class GasEstimate:
    gas_limit: int
    gas_price: int
    estimated_cost: Decimal  # native units
    symbol: str


@dataclass(frozen=True)
class ReceiptSummary:
    """Subset of a receipt the reconciliation paths need."""

    tx_hash: str
    status: int
    block_number: int
    block_hash: str | None
    gas_used: int
    effective_gas_price: int | None
    contract_address: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def gas_fee(self) -> Decimal | None:
        if self.effective_gas_price is None:
            return None
        return from_base_units(self.gas_used * self.effective_gas_price, NATIVE_DECIMALS)

    @classmethod
    def from_receipt(cls, receipt: Any) -> "ReceiptSummary":
        return cls(
            tx_hash=to_hex_str(receipt["transactionHash"]),
            status=int(receipt["status"]),
            block_number=int(receipt["blockNumber"]),
            block_hash=to_hex_str(receipt.get("blockHash")),
            gas_used=int(receipt["gasUsed"]),
            effective_gas_price=(
                int(receipt["effectiveGasPrice"])
                if receipt.get("effectiveGasPrice") is not None
                else None
            ),
            contract_address=receipt.get("contractAddress"),
        )
