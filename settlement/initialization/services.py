"""
Settlement Initialization - Services Module.

Module: services.py
Composition root: builds the network registry, blockchain client,
contract gateway, settlement processor and event ingestor over one
session factory.
"""

from collections.abc import Mapping
from dataclasses import dataclass

import redis.asyncio as redis
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.config.networks import load_network_configs
from settlement.config.settings import Settings
from settlement.repositories.unit_of_work import UnitOfWork
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.network_registry import NetworkRegistry, Web3Factory
from settlement.services.contract_gateway import ContractGateway
from settlement.services.event_ingestor import EventIngestor
from settlement.services.settlement_processor import SettlementProcessor
from settlement.utils.distributed_lock import DistributedLock


@dataclass
class SettlementServices:
    """Wired service graph."""

    uow: UnitOfWork
    registry: NetworkRegistry
    client: BlockchainClient
    gateway: ContractGateway
    processor: SettlementProcessor
    ingestor: EventIngestor

    async def close(self) -> None:
        """Stop subscriptions and close RPC sessions."""
        await self.ingestor.close()
        await self.registry.close()


def build_services(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    web3_factory: Web3Factory | None = None,
    environ: Mapping[str, str] | None = None,
    redis_client: redis.Redis | None = None,
) -> SettlementServices:
    """
    Build the service graph.

    Args:
        session_factory: Async session factory
        settings: Application settings
        web3_factory: AsyncWeb3 factory (tests inject a fake)
        environ: Environment mapping for network variables
        redis_client: Redis client for signer locks shared across workers;
            without one signer locks only cover this event loop

    Returns:
        SettlementServices
    """
    uow = UnitOfWork(session_factory)
    registry = NetworkRegistry(
        load_network_configs(settings, environ),
        web3_factory=web3_factory,
        lock=DistributedLock(redis_client=redis_client),
    )
    client = BlockchainClient(registry)
    gateway = ContractGateway(uow, client, settings.contract_artifacts_dir)
    processor = SettlementProcessor(uow, client, gateway, settings)
    ingestor = EventIngestor(uow, settings)

    logger.info(
        f"Settlement services initialized (networks: {', '.join(registry.networks)}, "
        f"mode: {settings.settlement_mode})"
    )
    return SettlementServices(
        uow=uow,
        registry=registry,
        client=client,
        gateway=gateway,
        processor=processor,
        ingestor=ingestor,
    )


async def ensure_networks(uow: UnitOfWork, registry: NetworkRegistry) -> dict[str, int]:
    """
    Create missing BlockchainNetwork rows for configured networks.

    Existing rows are left untouched.

    Returns:
        {network name: BlockchainNetwork ID}
    """
    network_ids: dict[str, int] = {}
    async with uow.transaction() as tx:
        for name in registry.networks:
            config = registry.get_config(name)
            network = await tx.blockchain_networks.find_by_type(config.name)
            if network is None:
                network = await tx.blockchain_networks.create(
                    type=config.name,
                    chain_id=config.chain_id,
                    rpc_url=config.rpc_url,
                    native_symbol=config.native_symbol,
                    is_testnet=config.is_testnet,
                    is_active=True,
                )
                logger.info(f"Registered network {config.name} (chain_id={config.chain_id})")
            network_ids[config.name] = network.id
    return network_ids
