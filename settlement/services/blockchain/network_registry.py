"""
Network registry.

Holds per-network configuration and lazily created AsyncWeb3 clients.
Constructed once at startup and passed to every component that needs
network access.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any

import aiohttp
from eth_account import Account
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import ExtraDataToPOAMiddleware

from settlement.config.constants import BLOCKCHAIN_RPC_TIMEOUT, SIGNER_LOCK_MARGIN
from settlement.config.networks import NetworkConfig
from settlement.utils.distributed_lock import DistributedLock
from settlement.utils.exceptions import UnsupportedNetworkError, WalletNotConfiguredError
from settlement.utils.security import mask_address

# Chains whose blocks carry PoA extraData
POA_NETWORK_PREFIXES = ("BSC_", "POLYGON_")

Web3Factory = Callable[[NetworkConfig], AsyncWeb3]


def create_web3(config: NetworkConfig) -> AsyncWeb3:
    """Create AsyncWeb3 client for a network."""
    web3 = AsyncWeb3(
        AsyncHTTPProvider(
            config.rpc_url,
            request_kwargs={"timeout": aiohttp.ClientTimeout(total=BLOCKCHAIN_RPC_TIMEOUT)},
        )
    )
    if config.name.startswith(POA_NETWORK_PREFIXES):
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


class NetworkHandle:
    """
    Client (and optional signer) for one network.

    The private key is kept only as a string; an Account object is created
    per signature and dropped right after.
    """

    def __init__(self, config: NetworkConfig, web3: AsyncWeb3) -> None:
        self.config = config
        self.web3 = web3
        self._private_key = (
            config.private_key.get_secret_value() if config.private_key else None
        )
        self.address: str | None = (
            Account.from_key(self._private_key).address if self._private_key else None
        )

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    def sign_transaction(self, transaction: dict[str, Any]) -> Any:
        """
        Sign a transaction dict with the network key.

        Raises:
            WalletNotConfiguredError: If the network is read-only
        """
        if not self._private_key:
            raise WalletNotConfiguredError(self.name)

        tx = dict(transaction)
        tx.pop("from", None)

        account = Account.from_key(self._private_key)
        try:
            return account.sign_transaction(tx)
        finally:
            del account

    def __repr__(self) -> str:
        return f"<NetworkHandle({self.name}, signer={mask_address(self.address)})>"


class NetworkRegistry:
    """
    Registry of configured networks.

    Features:
    - Lazy AsyncWeb3 client creation
    - Signer resolution with read-only detection
    - One distributed lock per (network, signer address), shared by every
      registry and worker using the same Redis
    """

    def __init__(
        self,
        configs: dict[str, NetworkConfig],
        web3_factory: Web3Factory | None = None,
        lock: DistributedLock | None = None,
    ) -> None:
        self._configs = {name.upper(): config for name, config in configs.items()}
        self._web3_factory = web3_factory or create_web3
        self._handles: dict[str, NetworkHandle] = {}
        self._lock = lock or DistributedLock()

    @property
    def networks(self) -> list[str]:
        return list(self._configs)

    def is_supported(self, network: str | None) -> bool:
        return network is not None and network.upper() in self._configs

    def get_config(self, network: str) -> NetworkConfig:
        config = self._configs.get(network.upper()) if network else None
        if config is None:
            raise UnsupportedNetworkError(network)
        return config

    def get(self, network: str) -> NetworkHandle:
        """
        Get client handle for a network.

        Raises:
            UnsupportedNetworkError: If the network is not configured
        """
        config = self.get_config(network)
        handle = self._handles.get(config.name)
        if handle is None:
            handle = NetworkHandle(config, self._web3_factory(config))
            self._handles[config.name] = handle
            logger.info(
                f"Initialized {config.name} client (chain_id={config.chain_id}, "
                f"signer={mask_address(handle.address)})"
            )
        return handle

    def signer(self, network: str) -> NetworkHandle:
        """
        Get handle that can sign for a network.

        Raises:
            UnsupportedNetworkError: If the network is not configured
            WalletNotConfiguredError: If the network has no signing key
        """
        handle = self.get(network)
        if not handle.can_sign:
            raise WalletNotConfiguredError(handle.name)
        return handle

    @staticmethod
    def signer_lock_key(handle: NetworkHandle) -> str:
        return f"signer:{handle.name}:{(handle.address or '').lower()}"

    def signer_lock(self, handle: NetworkHandle) -> AbstractAsyncContextManager[None]:
        """
        Lock serializing submissions from one signer on one network.

        Held for a whole submission, so it expires and gives up waiting
        after one receipt wait plus SIGNER_LOCK_MARGIN.

        Raises:
            LockNotAcquiredError: Another submission held it too long
        """
        timeout = int(handle.config.confirmation_timeout) + SIGNER_LOCK_MARGIN
        return self._lock.lock(
            self.signer_lock_key(handle), timeout=timeout, blocking_timeout=float(timeout)
        )

    async def close(self) -> None:
        """Close provider sessions."""
        for name, handle in self._handles.items():
            try:
                await handle.web3.provider.disconnect()
            except (aiohttp.ClientError, OSError, RuntimeError) as e:
                logger.warning(f"Error closing {name} provider: {e}")
        self._handles.clear()
