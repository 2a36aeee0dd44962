"""Pytest configuration and shared fixtures for all tests."""

import os

# Minimal environment for the module-level Settings instance
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENABLED_NETWORKS", "BSC_TESTNET,ETH_SEPOLIA")
os.environ.setdefault("DEFAULT_NETWORK", "BSC_TESTNET")
os.environ.setdefault("REDIS_HOST", "localhost")

from datetime import UTC, datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from settlement.config.database import create_session_factory
from settlement.config.networks import NetworkConfig
from settlement.config.settings import Settings
from settlement.initialization.services import ensure_networks
from settlement.models import Base, CashbackStatus, ContractType
from settlement.repositories.unit_of_work import UnitOfWork
from settlement.services.blockchain.client import BlockchainClient
from settlement.services.blockchain.network_registry import NetworkRegistry
from settlement.services.contract_gateway import ContractGateway
from settlement.services.event_ingestor import EventIngestor
from settlement.services.settlement_processor import SettlementProcessor
from tests.fakes import FakeWeb3Factory

# Hardhat account #0 (public test key)
SIGNER_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
SIGNER_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

USER_WALLET = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
MANAGER_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def sample_wallet_address():
    """Sample valid wallet address for testing."""
    return USER_WALLET


@pytest.fixture
def sample_transaction_hash():
    """Sample transaction hash for testing."""
    return "0x1234567890abcdef1234567890abcdef1234567890abcdef1234567890abcdef"


@pytest.fixture
def test_settings(tmp_path):
    """Settings isolated from .env, retry backoff disabled."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite://",
        enabled_networks="BSC_TESTNET,ETH_SEPOLIA",
        default_network="BSC_TESTNET",
        settlement_mode="auto",
        cashback_max_retries=3,
        retry_base_delay_seconds=0,
        cashback_batch_size=10,
        contract_artifacts_dir=str(tmp_path / "artifacts"),
    )


@pytest.fixture
def network_configs():
    """BSC testnet with a signer, Sepolia read-only."""
    return {
        "BSC_TESTNET": NetworkConfig(
            name="BSC_TESTNET",
            chain_id=97,
            rpc_url="http://localhost:8545",
            native_symbol="tBNB",
            private_key=SecretStr(SIGNER_PRIVATE_KEY),
        ),
        "ETH_SEPOLIA": NetworkConfig(
            name="ETH_SEPOLIA",
            chain_id=11155111,
            rpc_url="http://localhost:8546",
            native_symbol="SepoliaETH",
        ),
    }


@pytest.fixture
def web3_factory():
    return FakeWeb3Factory()


@pytest.fixture
def fake_eth(web3_factory):
    """Fake node of BSC_TESTNET."""
    return web3_factory.eth("BSC_TESTNET")


@pytest.fixture
def registry(network_configs, web3_factory):
    return NetworkRegistry(network_configs, web3_factory=web3_factory)


@pytest.fixture
def client(registry):
    return BlockchainClient(registry)


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def uow(engine):
    return UnitOfWork(create_session_factory(engine))


@pytest_asyncio.fixture
async def network_ids(uow, registry):
    """Stored BlockchainNetwork IDs by name."""
    return await ensure_networks(uow, registry)


@pytest.fixture
def gateway(uow, client, test_settings):
    return ContractGateway(uow, client, test_settings.contract_artifacts_dir)


@pytest.fixture
def processor(uow, client, gateway, test_settings):
    return SettlementProcessor(uow, client, gateway, test_settings)


@pytest.fixture
def ingestor(uow, test_settings):
    return EventIngestor(uow, test_settings)


@pytest.fixture
def create_user(uow):
    """Factory creating a user with a wallet on BSC_TESTNET."""

    async def factory(**data):
        data.setdefault("wallet_address", USER_WALLET)
        data.setdefault("preferred_network", "BSC_TESTNET")
        async with uow.transaction() as tx:
            return await tx.users.create(**data)

    return factory


@pytest.fixture
def create_cashback(uow):
    """Factory creating a cashback for a user."""

    async def factory(user_id, **data):
        data.setdefault("payment_id", 1)
        data.setdefault("amount", Decimal("10"))
        data.setdefault("percentage", Decimal("5"))
        data.setdefault("status", CashbackStatus.PENDING.value)
        async with uow.transaction() as tx:
            return await tx.cashbacks.create(user_id=user_id, **data)

    return factory


@pytest.fixture
def get_cashback(uow):
    async def getter(cashback_id):
        async with uow.transaction() as tx:
            return await tx.cashbacks.get_by_id(cashback_id)

    return getter


@pytest.fixture
def create_manager(uow):
    """Factory registering a deployed CashbackManager."""

    async def factory(network_id, address=MANAGER_ADDRESS, **data):
        async with uow.transaction() as tx:
            return await tx.smart_contracts.create(
                name="CashbackManager",
                type=ContractType.CASHBACK_MANAGER.value,
                network_id=network_id,
                address=address,
                abi=[],
                deployer_address=SIGNER_ADDRESS,
                deployment_tx_hash="0x" + "ab" * 32,
                deployed_at=datetime.now(UTC),
                **data,
            )

    return factory


@pytest.fixture
def mock_redis_client():
    """Mock Redis client whose lock is free."""
    redis_lock = AsyncMock()
    redis_lock.acquire = AsyncMock(return_value=True)
    redis_lock.release = AsyncMock()
    client = MagicMock()
    client.lock = MagicMock(return_value=redis_lock)
    return client
