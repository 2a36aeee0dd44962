"""
Network configuration.

Per-network RPC endpoint, signing key, optional token contract and gas limit,
sourced from ``{NAME}_RPC_URL``, ``{NAME}_PRIVATE_KEY``,
``{NAME}_TOKEN_ADDRESS``, ``{NAME}_GAS_LIMIT`` and ``{NAME}_CHAIN_ID``.
"""

import os
from collections.abc import Mapping
from decimal import Decimal
from typing import NamedTuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from settlement.config.constants import DEFAULT_CONFIRMATION_TIMEOUT, DEFAULT_GAS_LIMIT, MAX_GAS_PRICE_GWEI
from settlement.config.settings import Settings


class NetworkPreset(NamedTuple):
    chain_id: int
    rpc_url: str
    native_symbol: str
    is_testnet: bool


NETWORK_PRESETS: dict[str, NetworkPreset] = {
    "BSC_TESTNET": NetworkPreset(97, "https://data-seed-prebsc-1-s1.binance.org:8545/", "tBNB", True),
    "BSC_MAINNET": NetworkPreset(56, "https://bsc-dataseed.binance.org/", "BNB", False),
    "ETH_SEPOLIA": NetworkPreset(11155111, "https://rpc.sepolia.org", "SepoliaETH", True),
    "ETH_MAINNET": NetworkPreset(1, "https://cloudflare-eth.com", "ETH", False),
    "POLYGON_MUMBAI": NetworkPreset(80001, "https://rpc-mumbai.maticvigil.com", "tMATIC", True),
    "POLYGON_MAINNET": NetworkPreset(137, "https://polygon-rpc.com", "MATIC", False),
}


class NetworkConfig(BaseModel):
    """Resolved configuration of one network."""

    model_config = ConfigDict(frozen=True)

    name: str
    chain_id: int = Field(gt=0)
    rpc_url: str = Field(min_length=1)
    native_symbol: str
    is_testnet: bool = True
    private_key: SecretStr | None = None
    token_address: str | None = None
    gas_limit: int = Field(default=DEFAULT_GAS_LIMIT, gt=0)
    max_gas_price_gwei: Decimal = MAX_GAS_PRICE_GWEI
    confirmation_timeout: int = DEFAULT_CONFIRMATION_TIMEOUT

    @field_validator('token_address')
    @classmethod
    def validate_token_address(cls, v: str | None) -> str | None:
        """Validate token contract address format."""
        if v is None:
            return None
        if not v.startswith('0x') or len(v) != 42:
            raise ValueError(
                f'Invalid token address: {v}. Must start with 0x and be 42 characters long.'
            )
        try:
            int(v[2:], 16)
        except ValueError as exc:
            raise ValueError(f'Invalid token address format: {v}') from exc
        return v

    @property
    def can_sign(self) -> bool:
        return self.private_key is not None

    @property
    def uses_token(self) -> bool:
        return self.token_address is not None


def _env(environ: Mapping[str, str], key: str) -> str | None:
    value = environ.get(key)
    if value is None or not value.strip():
        return None
    return value.strip()


def load_network_config(
    name: str,
    settings: Settings,
    environ: Mapping[str, str] | None = None,
) -> NetworkConfig:
    """
    Build configuration for one network.

    Args:
        name: Network name, e.g. BSC_TESTNET
        settings: Application settings (gas cap, confirmation timeout)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        NetworkConfig

    Raises:
        ValueError: If the network has no preset and no RPC URL / chain id
    """
    environ = os.environ if environ is None else environ
    name = name.strip().upper()
    preset = NETWORK_PRESETS.get(name)

    rpc_url = _env(environ, f"{name}_RPC_URL") or (preset.rpc_url if preset else None)
    chain_id_raw = _env(environ, f"{name}_CHAIN_ID")
    chain_id = int(chain_id_raw) if chain_id_raw else (preset.chain_id if preset else None)
    if rpc_url is None or chain_id is None:
        raise ValueError(
            f"Network {name} has no preset; set {name}_RPC_URL and {name}_CHAIN_ID"
        )

    private_key = _env(environ, f"{name}_PRIVATE_KEY")
    gas_limit_raw = _env(environ, f"{name}_GAS_LIMIT")

    config = NetworkConfig(
        name=name,
        chain_id=chain_id,
        rpc_url=rpc_url,
        native_symbol=preset.native_symbol if preset else "ETH",
        is_testnet=preset.is_testnet if preset else True,
        private_key=SecretStr(private_key) if private_key else None,
        token_address=_env(environ, f"{name}_TOKEN_ADDRESS"),
        gas_limit=int(gas_limit_raw) if gas_limit_raw else DEFAULT_GAS_LIMIT,
        max_gas_price_gwei=settings.max_gas_price_gwei,
        confirmation_timeout=settings.confirmation_timeout,
    )

    if not config.can_sign:
        logger.warning(f"Network {name}: no {name}_PRIVATE_KEY set, network is read-only")

    return config


def load_network_configs(
    settings: Settings,
    environ: Mapping[str, str] | None = None,
) -> dict[str, NetworkConfig]:
    """Load configuration for every network listed in ENABLED_NETWORKS."""
    configs = {
        name: load_network_config(name, settings, environ)
        for name in settings.get_enabled_networks()
    }
    logger.info(f"Loaded network configuration: {', '.join(configs) or 'none'}")
    return configs
