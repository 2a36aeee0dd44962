"""
Nonce management.

Reads the next nonce for a signer with stuck transaction detection.
Callers hold the registry signer lock around nonce read and broadcast.
"""

from loguru import logger
from web3 import AsyncWeb3

from settlement.config.constants import STUCK_NONCE_THRESHOLD
from settlement.services.blockchain.rpc_wrapper import with_timeout
from settlement.utils.security import mask_address


class NonceManager:
    """
    Manages transaction nonces with safety features.

    Features:
    - Pending nonce (includes mempool transactions)
    - Stuck transaction detection
    """

    async def get_safe_nonce(self, web3: AsyncWeb3, address: str, network: str | None = None) -> int:
        """
        Get nonce with stuck transaction detection.

        Args:
            web3: AsyncWeb3 client of the network
            address: Signer address
            network: Network name for logging

        Returns:
            Nonce to use for the next transaction
        """
        pending_nonce = await with_timeout(
            web3.eth.get_transaction_count(address, "pending"),
            operation_name="get pending nonce",
            network=network,
        )
        confirmed_nonce = await self.get_confirmed_nonce(web3, address, network)

        if pending_nonce > confirmed_nonce + STUCK_NONCE_THRESHOLD:
            logger.warning(
                f"Possible stuck transactions detected for {mask_address(address)} on {network}: "
                f"pending={pending_nonce}, confirmed={confirmed_nonce}, "
                f"stuck={pending_nonce - confirmed_nonce}"
            )

        return pending_nonce

    async def get_confirmed_nonce(self, web3: AsyncWeb3, address: str, network: str | None = None) -> int:
        """Nonce of the next transaction that can still be mined (latest block)."""
        return await with_timeout(
            web3.eth.get_transaction_count(address, "latest"),
            operation_name="get confirmed nonce",
            network=network,
        )
