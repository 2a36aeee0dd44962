"""
Contract interfaces.

Maps each contract type to its ABI and to a typed command enum of the
methods the service invokes. Method names are looked up against the ABI
only when a contract is bound.
"""

import json
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from loguru import logger

from settlement.contracts.abis import ABI, CASHBACK_MANAGER_ABI, CASHBACK_POOL_ABI, CASHBACK_TOKEN_ABI
from settlement.models.enums import ContractType

READ_ONLY_MUTABILITY = frozenset({"view", "pure"})


class CashbackTokenMethod(StrEnum):
    NAME = "name"
    SYMBOL = "symbol"
    DECIMALS = "decimals"
    TOTAL_SUPPLY = "totalSupply"
    BALANCE_OF = "balanceOf"
    TRANSFER = "transfer"
    APPROVE = "approve"
    MINT = "mint"
    BURN = "burn"


class CashbackManagerMethod(StrEnum):
    ALLOCATE_CASHBACK = "allocateCashback"
    CLAIM_CASHBACK = "claimCashback"
    CLAIM_CASHBACK_FOR = "claimCashbackFor"
    CREATE_CAMPAIGN = "createCampaign"
    GET_CLAIMABLE_BALANCE = "getClaimableBalance"
    MINIMUM_WITHDRAWAL = "minimumWithdrawal"


class CashbackPoolMethod(StrEnum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    ADD_DISTRIBUTOR = "addDistributor"
    GET_POOL_BALANCE = "getPoolBalance"
    DEPOSIT_FEE_PERCENTAGE = "depositFeePercentage"
    WITHDRAWAL_FEE_PERCENTAGE = "withdrawalFeePercentage"


ContractMethod = CashbackTokenMethod | CashbackManagerMethod | CashbackPoolMethod


@dataclass(frozen=True)
class ContractInterface:
    """ABI (and optionally bytecode) of one contract type."""

    contract_type: ContractType
    name: str
    abi: ABI
    methods: type[StrEnum]
    bytecode: str | None = None

    def function_entry(self, method: str) -> dict[str, Any] | None:
        for entry in self.abi:
            if entry.get("type") == "function" and entry.get("name") == method:
                return entry
        return None

    def is_read_only(self, method: str) -> bool:
        entry = self.function_entry(method)
        return entry is not None and entry.get("stateMutability") in READ_ONLY_MUTABILITY

    def has_event(self, event_name: str) -> bool:
        return any(
            entry.get("type") == "event" and entry.get("name") == event_name
            for entry in self.abi
        )


_INTERFACES: dict[ContractType, ContractInterface] = {
    ContractType.CASHBACK_TOKEN: ContractInterface(
        ContractType.CASHBACK_TOKEN, "CashbackToken", CASHBACK_TOKEN_ABI, CashbackTokenMethod
    ),
    ContractType.CASHBACK_MANAGER: ContractInterface(
        ContractType.CASHBACK_MANAGER, "CashbackManager", CASHBACK_MANAGER_ABI, CashbackManagerMethod
    ),
    ContractType.CASHBACK_POOL: ContractInterface(
        ContractType.CASHBACK_POOL, "CashbackPool", CASHBACK_POOL_ABI, CashbackPoolMethod
    ),
}


def get_interface(contract_type: ContractType | str) -> ContractInterface:
    """
    Resolve the interface of a contract type.

    Raises:
        ValueError: If the type is unknown
    """
    return _INTERFACES[ContractType(contract_type)]


def load_deployable_interface(
    contract_type: ContractType | str, artifacts_dir: str | Path
) -> ContractInterface:
    """
    Resolve the interface and attach bytecode from a Hardhat artifact.

    Looks for ``<artifacts_dir>/<Name>.sol/<Name>.json`` then
    ``<artifacts_dir>/<Name>.json``.

    Raises:
        FileNotFoundError: If no artifact exists
        ValueError: If the artifact carries no bytecode
    """
    interface = get_interface(contract_type)
    base = Path(artifacts_dir)
    candidates = [
        base / f"{interface.name}.sol" / f"{interface.name}.json",
        base / f"{interface.name}.json",
    ]
    for path in candidates:
        if path.is_file():
            artifact = json.loads(path.read_text(encoding="utf-8"))
            bytecode = artifact.get("bytecode")
            if not bytecode or bytecode == "0x":
                raise ValueError(f"Artifact {path} has no bytecode")
            logger.debug(f"Loaded {interface.name} bytecode from {path}")
            return ContractInterface(
                interface.contract_type,
                interface.name,
                artifact.get("abi") or interface.abi,
                interface.methods,
                bytecode,
            )

    raise FileNotFoundError(
        f"No compiled artifact for {interface.name} in {base}"
    )
