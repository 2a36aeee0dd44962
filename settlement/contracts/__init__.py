"""Contract ABIs and typed method commands."""

from settlement.contracts.interfaces import (
    CashbackManagerMethod,
    CashbackPoolMethod,
    CashbackTokenMethod,
    ContractInterface,
    ContractMethod,
    get_interface,
    load_deployable_interface,
)

__all__ = [
    "CashbackManagerMethod",
    "CashbackPoolMethod",
    "CashbackTokenMethod",
    "ContractInterface",
    "ContractMethod",
    "get_interface",
    "load_deployable_interface",
]
