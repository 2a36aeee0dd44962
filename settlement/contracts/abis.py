"""
Contract ABIs.

ERC-20 subset used for token transfers, plus the Cashback contract suite
(CashbackToken, CashbackManager, CashbackPool). Bytecode is not kept here;
it is read from the compiled Hardhat artifacts at deploy time.
"""

from typing import Any

ABI = list[dict[str, Any]]


def _param(name: str, type_: str, indexed: bool | None = None) -> dict[str, Any]:
    param: dict[str, Any] = {"name": name, "type": type_}
    if indexed is not None:
        param["indexed"] = indexed
    return param


def _function(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[str],
    mutability: str,
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [_param(n, t) for n, t in inputs],
        "outputs": [_param("", t) for t in outputs],
        "stateMutability": mutability,
    }


def _event(name: str, inputs: list[tuple[str, str, bool]]) -> dict[str, Any]:
    return {
        "type": "event",
        "name": name,
        "anonymous": False,
        "inputs": [_param(n, t, indexed) for n, t, indexed in inputs],
    }


def _constructor(inputs: list[tuple[str, str]]) -> dict[str, Any]:
    return {
        "type": "constructor",
        "inputs": [_param(n, t) for n, t in inputs],
        "stateMutability": "nonpayable",
    }


# ERC-20 standard functions used by the direct transfer path
ERC20_ABI: ABI = [
    _function("decimals", [], ["uint8"], "view"),
    _function("symbol", [], ["string"], "view"),
    _function("balanceOf", [("account", "address")], ["uint256"], "view"),
    _function("transfer", [("to", "address"), ("amount", "uint256")], ["bool"], "nonpayable"),
    _event(
        "Transfer",
        [("from", "address", True), ("to", "address", True), ("value", "uint256", False)],
    ),
]

CASHBACK_TOKEN_ABI: ABI = [
    _constructor([("initialSupply", "uint256")]),
    _function("name", [], ["string"], "view"),
    _function("symbol", [], ["string"], "view"),
    _function("decimals", [], ["uint8"], "view"),
    _function("totalSupply", [], ["uint256"], "view"),
    _function("balanceOf", [("account", "address")], ["uint256"], "view"),
    _function("transfer", [("to", "address"), ("amount", "uint256")], ["bool"], "nonpayable"),
    _function("approve", [("spender", "address"), ("amount", "uint256")], ["bool"], "nonpayable"),
    _function("mint", [("to", "address"), ("amount", "uint256")], [], "nonpayable"),
    _function("burn", [("amount", "uint256")], [], "nonpayable"),
    _event(
        "Transfer",
        [("from", "address", True), ("to", "address", True), ("value", "uint256", False)],
    ),
]

CASHBACK_MANAGER_ABI: ABI = [
    _constructor([("cashbackToken", "address"), ("admin", "address")]),
    _function(
        "allocateCashback",
        [("user", "address"), ("amount", "uint256"), ("campaignId", "uint256")],
        [],
        "nonpayable",
    ),
    _function("claimCashback", [], [], "nonpayable"),
    _function("claimCashbackFor", [("user", "address")], [], "nonpayable"),
    _function(
        "createCampaign",
        [
            ("name", "string"),
            ("rate", "uint256"),
            ("startTime", "uint256"),
            ("endTime", "uint256"),
            ("totalBudget", "uint256"),
        ],
        ["uint256"],
        "nonpayable",
    ),
    _function("getClaimableBalance", [("user", "address")], ["uint256"], "view"),
    _function("minimumWithdrawal", [], ["uint256"], "view"),
    _event(
        "CashbackAllocated",
        [("user", "address", True), ("amount", "uint256", False), ("campaignId", "uint256", True)],
    ),
    _event("CashbackClaimed", [("user", "address", True), ("amount", "uint256", False)]),
    _event("CampaignCreated", [("campaignId", "uint256", True), ("name", "string", False)]),
]

CASHBACK_POOL_ABI: ABI = [
    _constructor(
        [("poolToken", "address"), ("cashbackToken", "address"), ("feeCollector", "address")]
    ),
    _function("deposit", [("amount", "uint256")], [], "nonpayable"),
    _function("withdraw", [("amount", "uint256")], [], "nonpayable"),
    _function("addDistributor", [("distributor", "address")], [], "nonpayable"),
    _function("getPoolBalance", [], ["uint256"], "view"),
    _function("depositFeePercentage", [], ["uint256"], "view"),
    _function("withdrawalFeePercentage", [], ["uint256"], "view"),
    _event("TokensDeposited", [("user", "address", True), ("amount", "uint256", False)]),
    _event(
        "TokensWithdrawn",
        [("user", "address", True), ("amount", "uint256", False), ("fee", "uint256", False)],
    ),
]
