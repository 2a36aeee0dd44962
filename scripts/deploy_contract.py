#!/usr/bin/env python3
"""
Deploy a Cashback contract.

Usage:
    python scripts/deploy_contract.py --network BSC_TESTNET --type CASHBACK_TOKEN \
        --args '["Cashback Token", "CBT", 1000000]'
    python scripts/deploy_contract.py --network BSC_TESTNET --type CASHBACK_MANAGER \
        --args '["0xTokenAddress", "0xAdminAddress"]'
"""

import argparse
import asyncio
import json
import sys

from loguru import logger

from settlement.config.database import create_engine, create_session_factory
from settlement.config.settings import settings
from settlement.initialization.services import build_services, ensure_networks
from settlement.models.enums import ContractType
from settlement.utils.exceptions import SettlementError
from settlement.utils.redis_utils import get_redis_client

logger.remove()
logger.add(sys.stderr, level="INFO")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Deploy a Cashback contract")
    parser.add_argument("--network", required=True, help="Network name, e.g. BSC_TESTNET")
    parser.add_argument(
        "--type",
        required=True,
        choices=[contract_type.value for contract_type in ContractType],
        help="Contract type",
    )
    parser.add_argument("--args", default="[]", help="Constructor arguments as a JSON list")
    parser.add_argument("--verify", action="store_true", help="Mark the contract verified after deployment")
    return parser.parse_args(argv)


async def deploy(args: argparse.Namespace) -> int:
    constructor_args = json.loads(args.args)
    if not isinstance(constructor_args, list):
        logger.error("--args must be a JSON list")
        return 2

    engine = create_engine(settings)
    redis_client = get_redis_client(settings)
    services = build_services(create_session_factory(engine), settings, redis_client=redis_client)
    try:
        network_ids = await ensure_networks(services.uow, services.registry)
        network = args.network.upper()
        if network not in network_ids:
            logger.error(f"Network {network} is not enabled (ENABLED_NETWORKS={settings.enabled_networks})")
            return 2

        handle = services.registry.signer(network)
        deployment = await services.gateway.deploy(
            ContractType(args.type), network_ids[network], constructor_args, handle
        )
        logger.success(
            f"{deployment.name} deployed\n"
            f"  Address: {deployment.address}\n"
            f"  TX: {deployment.tx_hash}\n"
            f"  Block: {deployment.block_number}\n"
            f"  Gas fee: {deployment.gas_fee}"
        )

        if args.verify:
            await services.gateway.verify(deployment.network_id, deployment.address, constructor_args)
        return 0
    except SettlementError as e:
        logger.error(str(e))
        return 1
    finally:
        await services.close()
        await engine.dispose()
        await redis_client.aclose()


if __name__ == "__main__":
    sys.exit(asyncio.run(deploy(parse_args())))
