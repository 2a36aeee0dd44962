"""
Settlement Processor - Stats Module.

Module: stats.py
Read-only views: per-status statistics and on-chain claimable balances.
"""

from decimal import Decimal

from settlement.config.constants import CASHBACK_TOKEN_DECIMALS
from settlement.models.enums import ContractType
from settlement.utils.exceptions import UnsupportedNetworkError
from settlement.utils.validation import from_base_units

from .core import SettlementCore


class SettlementStatsManager:
    """Statistics and balance queries."""

    def __init__(self, core: SettlementCore) -> None:
        self.core = core
        self.uow = core.uow
        self.settings = core.settings

    async def get_user_cashback_balance(self, user_id: int, network: str | None = None) -> Decimal:
        """
        Claimable cashback of a user from the network's CashbackManager.

        Args:
            user_id: User ID
            network: Network name (defaults to the user's preferred network)

        Returns:
            Balance in token units, 0 for users without a wallet

        Raises:
            ValueError: Unknown user
            UnsupportedNetworkError: No active manager on the network
        """
        async with self.uow.transaction() as tx:
            user = await tx.users.get_by_id(user_id)
            if user is None:
                raise ValueError(f"User {user_id} not found")

            network_name = (network or user.preferred_network or self.settings.default_network).upper()
            network_row = await tx.blockchain_networks.find_by_type(network_name)
            if network_row is None:
                raise UnsupportedNetworkError(network_name, "no stored network")
            manager = await tx.smart_contracts.find_active_by_type(
                ContractType.CASHBACK_MANAGER.value, network_row.id
            )
            if manager is None:
                raise UnsupportedNetworkError(network_name, "no active CASHBACK_MANAGER contract")
            wallet_address = user.wallet_address
            manager_address = manager.address

        if not wallet_address:
            return Decimal("0")

        handle = self.core.client.registry.get(network_name)
        balance = await self.core.gateway.get_claimable_balance(manager_address, wallet_address, handle)
        return from_base_units(balance, CASHBACK_TOKEN_DECIMALS)

    async def get_cashback_stats(self) -> dict:
        """
        Cashback statistics.

        Returns:
            Dict with by_status breakdown, total_count and settled_amount
        """
        async with self.uow.transaction() as tx:
            by_status = await tx.cashbacks.get_status_stats()

        return {
            "by_status": by_status,
            "total_count": sum(entry["count"] for entry in by_status.values()),
            "settled_amount": by_status["completed"]["total_amount"],
        }
