#!/usr/bin/env python3
"""Check RPC connectivity and signer balance of every enabled network."""

import asyncio
import sys

from loguru import logger

from settlement.config.networks import load_network_configs
from settlement.config.settings import settings
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.network_registry import NetworkRegistry
from settlement.utils.exceptions import SettlementError

logger.remove()
logger.add(sys.stderr, level="INFO")


async def check_networks() -> int:
    registry = NetworkRegistry(load_network_configs(settings))
    client = BlockchainClient(registry)
    unhealthy = 0
    try:
        for network, result in (await client.health_check()).items():
            if result["status"] != "healthy":
                unhealthy += 1
                logger.error(f"{network}: {result['error']}")
                continue

            address = client.get_wallet_address(network)
            if address is None:
                logger.warning(f"{network}: block {result['block_number']}, read-only")
                continue
            try:
                balance = await client.get_balance(address, network)
            except SettlementError as e:
                logger.error(f"{network}: balance check failed: {e}")
                unhealthy += 1
                continue
            symbol = registry.get_config(network).native_symbol
            logger.success(f"{network}: block {result['block_number']}, signer balance {balance} {symbol}")
    finally:
        await registry.close()
    return unhealthy


if __name__ == "__main__":
    sys.exit(1 if asyncio.run(check_networks()) else 0)
